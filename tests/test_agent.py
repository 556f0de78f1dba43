from __future__ import annotations

import re
import threading

import pandas as pd
import pytest

from dqagent import Agent, create_agent
from dqagent.errors import ExtractNotFoundError, InvalidStepError, PlanNotFoundError, ReportError
from dqagent.validate.config import AgentSettings, StepConfig
from dqagent.validate.models import StepState
from dqagent.validate.steps import StepFactoryMixin


class TestAgentSetup:
    def test_default_name(self):
        agent = create_agent()
        assert re.fullmatch(r"agent_\d{4}-\d{2}-\d{2}_\d{2}:\d{2}:\d{2}", agent.name)
        assert agent.plan is None
        assert agent.time is None
        assert agent.has_intel is False

    def test_plan_created_on_first_step(self, orders):
        agent = create_agent(orders, name="orders")
        assert agent.col_exists("amount") is agent
        assert len(agent.plan) == 1

    def test_failed_first_step_does_not_create_plan(self):
        agent = create_agent(name="empty")
        with pytest.raises(InvalidStepError):
            agent.col_exists("*")
        assert agent.plan is None

    def test_wildcard_snapshot(self, orders):
        agent = create_agent(orders)
        agent.col_vals_not_null("*")
        agent.table = orders.assign(extra=1)
        assert agent.plan.get(1).columns.names == tuple(orders.columns)
        assert agent.plan.get(1).columns.wildcard

    def test_fluent_chain(self, orders):
        agent = (
            create_agent(orders)
            .col_vals_between("qty", 1, 10)
            .col_vals_in_set("status", ["open", "closed", "void"])
            .col_vals_expr("qty > 0")
            .col_schema_match({"order_id": "BIGINT"}, complete=False)
            .conjointly(("col_vals_gt", "qty", 0), ("col_vals_not_null", ["status"]))
            .rows_distinct()
        )
        assert [step.assertion_type for step in agent.plan] == [
            "col_vals_between",
            "col_vals_in_set",
            "col_vals_expr",
            "col_schema_match",
            "conjointly",
            "rows_distinct",
        ]
        agent.interrogate()
        assert agent.all_passed()

    def test_plan_steps_is_all_or_nothing(self, orders):
        valid = StepConfig("col_exists", ["amount"], None, None, None, True, None, {})
        invalid = StepConfig("col_vals_gt", ["qty"], 1, None, {"warn_count": -1}, True, None, {})
        agent = create_agent(orders)
        with pytest.raises(InvalidStepError):
            agent.plan_steps([valid, invalid])
        assert agent.plan is None
        agent.col_vals_not_null("status")
        with pytest.raises(InvalidStepError):
            agent.plan_steps([valid, valid, invalid])
        assert len(agent.plan) == 1
        assert agent.plan_steps([valid, valid]) == [2, 3]

    def test_plan_steps_expands_wildcards(self, orders):
        config = StepConfig("col_vals_not_null", ["*"], None, None, None, True, None, {})
        agent = create_agent(orders)
        agent.plan_steps([config])
        assert agent.plan.get(1).columns.names == tuple(orders.columns)

    def test_step_factory_needs_add_step(self):
        class Incomplete(StepFactoryMixin):
            pass

        with pytest.raises(TypeError):
            Incomplete()


class TestInterrogate:
    def test_requires_table(self):
        agent = create_agent().col_exists("a")
        with pytest.raises(ValueError):
            agent.interrogate()

    def test_requires_plan(self, orders):
        with pytest.raises(PlanNotFoundError):
            create_agent(orders).interrogate()

    def test_interrogate_records_time_and_summary(self, orders):
        agent = create_agent(orders).col_vals_gt("amount", 5, thresholds={"warn_count": 0.2})
        assert agent.interrogate() is agent
        assert agent.has_intel
        assert agent.time is not None
        assert agent.summary.evaluated == 1
        assert agent.plan.get(1).warn is True
        assert not agent.all_passed()

    def test_cancelled_interrogation(self, orders):
        cancel = threading.Event()
        cancel.set()
        agent = create_agent(orders).col_exists("amount").interrogate(cancel=cancel)
        assert agent.summary.cancelled
        assert agent.plan.get(1).state is StepState.PLANNED

    def test_parallel_settings(self, orders):
        agent = Agent(orders, settings=AgentSettings(max_workers=3))
        agent.col_vals_gt("qty", 0).col_vals_gt("amount", 0).col_vals_not_null("status")
        agent.interrogate()
        assert [step.n_passed for step in agent.plan] == [10, 9, 10]


class TestReportAndExtracts:
    def test_report_before_plan(self):
        with pytest.raises(PlanNotFoundError):
            create_agent().get_report()

    def test_report_before_interrogation(self, orders):
        report = create_agent(orders).col_exists("amount").get_report()
        assert report.has_intel is False
        assert report.rows[0].eval is None

    def test_report_options(self, orders):
        agent = create_agent(orders).col_exists("amount").interrogate()
        with pytest.raises(ReportError):
            agent.get_report(arrange_by="name")
        assert agent.get_report(language="de").language.lang == "de"

    def test_extracts(self, orders, tmp_path):
        agent = create_agent(orders, name="orders:daily").col_vals_gt("amount", 10).interrogate()
        extract = agent.get_extract(1)
        assert len(extract) == 6
        extract.drop(extract.index, inplace=True)
        assert len(agent.get_extract(1)) == 6
        path = agent.export_extract(1, tmp_path)
        assert path.name == "orders_daily_0001.csv"
        assert len(pd.read_csv(path)) == 6

    def test_missing_extract(self, orders):
        agent = create_agent(orders).col_vals_gt("qty", 0).interrogate()
        with pytest.raises(ExtractNotFoundError):
            agent.get_extract(1)
