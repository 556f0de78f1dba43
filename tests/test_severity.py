from __future__ import annotations

import pytest

from dqagent.validate.models import Thresholds
from dqagent.validate.severity import SeverityState, evaluate, limit_exceeded


class TestLimitExceeded:
    def test_unset_limit_is_none(self):
        assert limit_exceeded(10, 7, None) is None

    def test_fraction_trips_at_or_above_limit(self):
        assert limit_exceeded(10, 7, 0.2) is True
        assert limit_exceeded(10, 7, 0.3) is True
        assert limit_exceeded(10, 7, 0.5) is False

    def test_count_trips_at_or_above_limit(self):
        assert limit_exceeded(10, 6, 3) is True
        assert limit_exceeded(10, 6, 4) is True
        assert limit_exceeded(10, 6, 5) is False

    @pytest.mark.parametrize("limit", [0.0, 0.1, 0.5, 1.0])
    def test_fraction_never_trips_without_units(self, limit):
        assert limit_exceeded(0, 0, limit) is False

    def test_float_one_is_a_fraction(self):
        assert limit_exceeded(10, 0, 1.0) is True
        assert limit_exceeded(10, 1, 1.0) is False


class TestEvaluate:
    def test_partial_failure_against_fractional_warn(self):
        state = evaluate(10, 7, Thresholds(warn_count=0.2))
        assert state == SeverityState(warn=True, stop=None, notify=None)
        assert evaluate(10, 7, Thresholds(warn_count=0.5)).warn is False

    def test_each_kind_is_independent(self):
        state = evaluate(10, 6, Thresholds(warn_count=1, stop_count=0.5, notify_count=0.3))
        assert state == SeverityState(warn=True, stop=False, notify=True)

    def test_empty_table_never_trips_fractions(self):
        state = evaluate(0, 0, Thresholds(warn_count=0.1, stop_count=0.5, notify_count=1.0))
        assert state == SeverityState(warn=False, stop=False, notify=False)

    def test_report_count_is_not_a_flag(self):
        assert evaluate(10, 0, Thresholds(report_count=1)) == SeverityState()
