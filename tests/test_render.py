from __future__ import annotations

import pandas as pd
import pytest

from dqagent import create_agent
from dqagent.report.render import flag_symbol, format_fraction, render_report, write_report


@pytest.fixture
def agent(orders):
    return (
        create_agent(orders, name="orders")
        .col_vals_gt("amount", 5, thresholds={"warn_count": 0.2, "stop_count": 0.5})
        .col_vals_gt("missing", 1)
        .col_exists("qty", active=False)
    )


class TestFormatting:
    @pytest.mark.parametrize(
        "value, expected",
        [(None, "—"), (0.0, "0.00"), (0.001, "0.01"), (0.5, "0.50"), (0.999, "0.99"), (1.0, "1.00")],
    )
    def test_fraction_clamping(self, value, expected):
        assert format_fraction(value) == expected

    def test_flags(self):
        assert flag_symbol(None) == "—"
        assert flag_symbol(False) == "○"
        assert flag_symbol(True) == "●"


class TestRenderReport:
    def test_plan_only_report(self, agent):
        html = render_report(agent.get_report())
        assert "Data Validation Plan" in html
        assert "No Interrogation Performed" in html

    def test_interrogated_report(self, agent):
        agent.interrogate()
        html = render_report(agent.get_report(), extracts=agent.extracts)
        assert "Data Validation Report" in html
        assert "No Interrogation Performed" not in html
        assert "●" in html
        assert "#FFC1C1" in html
        assert "#F2F2F2" in html
        assert "data:text/csv;base64," in html
        assert 'download="orders_0001.csv"' in html
        assert "Column(s) not found" in html

    def test_small_size_omits_columns(self, agent):
        agent.interrogate()
        html = render_report(agent.get_report(), size="small", extracts=agent.extracts)
        assert "<th>EXT</th>" not in html
        assert "<th>TBL</th>" not in html
        assert "data:text/csv" not in html

    def test_language(self, agent):
        agent.interrogate()
        html = render_report(agent.get_report(language="fr"))
        assert "Rapport de validation des données" in html

    def test_write_report(self, agent, tmp_path):
        path = write_report(agent.interrogate().get_report(), tmp_path / "out" / "report.html")
        assert path.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
