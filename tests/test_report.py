from __future__ import annotations

from datetime import datetime

import pandas as pd
import pytest

from dqagent.errors import PlanNotFoundError, ReportError
from dqagent.report.builder import (
    SMALL_FIELDS,
    STANDARD_FIELDS,
    AgentReport,
    ReportBuilder,
    eval_condition,
    report_summary,
    severity_score,
)
from dqagent.report.values import render_values
from dqagent.validate.config import AgentSettings
from dqagent.validate.models import (
    Bound,
    BoundsValues,
    CaptureStack,
    ColumnRef,
    ColumnValue,
    ExpressionValues,
    LiteralValues,
    SchemaValues,
    StepState,
    SubStep,
    SubStepValues,
)
from dqagent.validate.plan import ValidationPlan
from dqagent.validate.runner import Interrogator


@pytest.fixture
def table() -> pd.DataFrame:
    return pd.DataFrame({"a": range(1, 11), "b": range(10)})


@pytest.fixture
def interrogated(table):
    plan = ValidationPlan()
    plan.add_step("col_vals_gt", columns="a", values=0)
    plan.add_step("col_vals_gt", columns="b", values=3, thresholds={"stop_count": 3})
    plan.add_step("col_vals_gt", columns="a", values=100, active=False)
    _, extracts = Interrogator(AgentSettings()).interrogate(plan, table)
    return plan, extracts


def _mark(plan, index, **fields):
    step = plan.get(index)
    step.state = StepState.EVALUATED
    for name, value in fields.items():
        setattr(step, name, value)
    return step


class TestConditions:
    def test_eval_condition(self):
        plan = ValidationPlan()
        for _ in range(5):
            plan.add_step("col_exists", columns="a")
        _mark(plan, 1, eval_error=False, eval_warning=False)
        _mark(plan, 2, eval_error=True, eval_warning=False)
        _mark(plan, 3, eval_error=False, eval_warning=True)
        _mark(plan, 4, eval_error=True, eval_warning=True)
        assert [eval_condition(step) for step in plan] == ["OK", "ERROR", "WARNING", "W + E", None]

    def test_severity_score(self):
        plan = ValidationPlan()
        for _ in range(3):
            plan.add_step("col_exists", columns="a")
        _mark(plan, 1, eval_error=True, eval_warning=False, notify=True, stop=True, warn=True)
        _mark(plan, 2, eval_error=False, eval_warning=False, stop=True, warn=None)
        _mark(plan, 3, eval_error=True, eval_warning=False, notify=True)
        plan.get(3).active = False
        assert [severity_score(step) for step in plan] == [16, 2, 0]


class TestBuild:
    def test_end_to_end_severity_order(self, interrogated, english):
        plan, extracts = interrogated
        report = ReportBuilder(english).build(plan, extracts, arrange_by="severity", has_intel=True)
        assert [row.i for row in report] == [2, 1, 3]
        stopped = report.rows[0]
        assert (stopped.units, stopped.n_pass, stopped.n_fail) == (10, 6, 4)
        assert stopped.S is True
        assert stopped.f_pass == pytest.approx(0.6)
        assert stopped.f_fail == pytest.approx(0.4)
        assert stopped.extract == 4

    def test_insertion_order_by_default(self, interrogated, english):
        plan, extracts = interrogated
        report = ReportBuilder(english).build(plan, extracts)
        assert [row.i for row in report] == [1, 2, 3]
        assert len(report) == len(plan)

    def test_fail_states_keeps_positive_scores(self, interrogated, english):
        plan, extracts = interrogated
        report = ReportBuilder(english).build(plan, extracts, keep="fail_states")
        assert [row.i for row in report] == [2]

    def test_inactive_row(self, interrogated, english):
        plan, extracts = interrogated
        row = ReportBuilder(english).build(plan, extracts).rows[2]
        assert row.active is False
        assert row.eval is None and row.units is None
        assert row.W is None and row.S is None and row.N is None
        assert row.extract is None

    def test_build_is_deterministic(self, interrogated, english):
        plan, extracts = interrogated
        builder = ReportBuilder(english)
        first = builder.build(plan, extracts, arrange_by="severity")
        second = builder.build(plan, extracts, arrange_by="severity")
        assert first.rows == second.rows

    def test_stable_ties(self, english):
        plan = ValidationPlan()
        for _ in range(4):
            plan.add_step("col_exists", columns="a")
        _mark(plan, 1, eval_error=False, eval_warning=False)
        _mark(plan, 2, eval_error=False, eval_warning=False, warn=True)
        _mark(plan, 3, eval_error=False, eval_warning=False)
        _mark(plan, 4, eval_error=False, eval_warning=False, warn=True)
        report = ReportBuilder(english).build(plan, arrange_by="severity")
        assert [row.i for row in report] == [2, 4, 1, 3]

    def test_errored_step_is_reported(self, english):
        plan = ValidationPlan()
        plan.add_step("col_exists", columns="a")
        _mark(plan, 1, eval_error=True, eval_warning=False, capture_stack=CaptureStack(error="boom"))
        row = ReportBuilder(english).build(plan, keep="fail_states").rows[0]
        assert row.eval == "ERROR"
        assert row.error == "boom"
        assert row.units is None and row.f_pass is None and row.n_fail is None

    def test_zero_units(self, english):
        plan = ValidationPlan()
        plan.add_step("col_vals_gt", columns="a", values=0)
        _mark(plan, 1, eval_error=False, eval_warning=False, n=0, n_passed=0, f_passed=None)
        row = ReportBuilder(english).build(plan).rows[0]
        assert row.units == 0 and row.n_fail == 0
        assert row.f_pass is None and row.f_fail is None

    def test_legacy_values_render_as_missing(self, english):
        plan = ValidationPlan()
        plan.add_step("col_exists", columns="a")
        plan.get(1).values = {"unexpected": "shape"}
        plan.get(1).columns = None
        row = ReportBuilder(english).build(plan).rows[0]
        assert row.values is None
        assert row.columns is None

    def test_precondition_count(self, english):
        plan = ValidationPlan()
        plan.add_step("col_exists", columns="a")
        plan.add_step("col_exists", columns="a", preconditions=["SELECT * FROM tbl", lambda t: t])
        rows = ReportBuilder(english).build(plan).rows
        assert [row.precon for row in rows] == [None, 2]

    @pytest.mark.parametrize("options", [{"arrange_by": "worst"}, {"keep": "some"}])
    def test_invalid_choices(self, interrogated, english, options):
        plan, extracts = interrogated
        with pytest.raises(ReportError, match="choose from"):
            ReportBuilder(english).build(plan, extracts, **options)

    def test_missing_plan(self, english):
        with pytest.raises(PlanNotFoundError):
            ReportBuilder(english).build(None)


class TestAgentReport:
    def test_field_sets(self, interrogated, english):
        plan, extracts = interrogated
        report = ReportBuilder(english).build(plan, extracts)
        assert report.fields() == STANDARD_FIELDS
        assert report.fields("small") == SMALL_FIELDS
        assert not {"columns", "precon", "extract"} & set(SMALL_FIELDS)
        with pytest.raises(ReportError):
            report.fields("huge")

    def test_to_dataframe(self, interrogated, english):
        plan, extracts = interrogated
        report = ReportBuilder(english).build(plan, extracts)
        frame = report.to_dataframe("small")
        assert list(frame.columns) == list(SMALL_FIELDS)
        assert list(frame["i"]) == [1, 2, 3]
        assert report.to_records()[1]["extract"] == 4

    def test_titles(self, english):
        report = AgentReport(rows=[], language=english, has_intel=False)
        assert report.title == english.plan_title
        report.has_intel = True
        assert report.title == english.title

    def test_summary_counts(self, interrogated, english):
        plan, extracts = interrogated
        counts = report_summary(ReportBuilder(english).build(plan, extracts, agent_time=datetime.now()))
        assert counts["steps"] == 3
        assert counts["OK"] == 2
        assert counts["not_evaluated"] == 1
        assert counts["stop"] == 1


class TestRenderValues:
    def test_literals(self, english):
        assert render_values(LiteralValues((1, "x", None)), english) == "1, x, NULL"

    def test_column(self, english):
        assert render_values(ColumnValue(ColumnRef("b")), english) == "b"

    def test_bounds_keep_inclusive_markers(self, english):
        bounds = BoundsValues(Bound(1), Bound(ColumnRef("b"), inclusive=False))
        assert render_values(bounds, english) == "[1, b)"

    def test_schema(self, english):
        text = render_values(SchemaValues(columns=(("a", "BIGINT"),)), english)
        assert text == "COLUMN SCHEMA (SQL TYPES): a BIGINT"

    def test_sub_steps(self, english):
        one = SubStepValues((SubStep("col_vals_not_null"),))
        two = SubStepValues((SubStep("col_vals_not_null"), SubStep("col_vals_null")))
        assert render_values(one, english) == "1 step"
        assert render_values(two, english) == "2 steps"

    def test_expression(self, english):
        assert render_values(ExpressionValues("a > b"), english) == "a > b"

    def test_none_and_unknown(self, english):
        assert render_values(None, english) is None
        assert render_values(object(), english) is None
