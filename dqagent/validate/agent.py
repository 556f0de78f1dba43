"""The validation agent: a table, a plan and the results of interrogating it."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from dqagent.errors import ExtractNotFoundError, PlanNotFoundError
from dqagent.report.builder import AgentReport, ReportBuilder
from dqagent.report.export import write_extract
from dqagent.validate.config import (
    AgentSettings,
    StepConfig,
    apply_plan,
    load_language,
    load_plan,
    load_settings,
)
from dqagent.validate.locks import ReadWriteLock
from dqagent.validate.metadata import table_column_names
from dqagent.validate.models import InterrogationSummary, StepState
from dqagent.validate.plan import ColumnsArg, ValidationPlan
from dqagent.validate.runner import Interrogator
from dqagent.validate.steps import StepFactoryMixin

logger = logging.getLogger(__name__)


def default_agent_name(now: datetime | None = None) -> str:
    return f"agent_{(now or datetime.now()).strftime('%Y-%m-%d_%H:%M:%S')}"


class Agent(StepFactoryMixin):
    def __init__(
        self,
        table: pd.DataFrame | None = None,
        name: str | None = None,
        label: str | None = None,
        settings: AgentSettings | None = None,
    ) -> None:
        self.table = table
        self.name = name or default_agent_name()
        self.label = label or self.name
        self.settings = settings or load_settings()
        self.plan: ValidationPlan | None = None
        self.extracts: dict[int, pd.DataFrame] = {}
        self.summary: InterrogationSummary | None = None
        self.time: datetime | None = None
        self._lock = ReadWriteLock()

    def __repr__(self) -> str:
        steps = len(self.plan) if self.plan is not None else 0
        return f"Agent(name={self.name!r}, steps={steps}, has_intel={self.has_intel})"

    @property
    def has_intel(self) -> bool:
        return self.time is not None

    def add_step(
        self,
        assertion_type: str,
        columns: ColumnsArg = None,
        values: Any = None,
        preconditions: Any = None,
        thresholds: Any = None,
        active: bool = True,
        brief: str | None = None,
    ) -> int:
        table_columns = table_column_names(self.table) if self.table is not None else None
        with self._lock.write():
            plan = self.plan if self.plan is not None else ValidationPlan()
            index = plan.add_step(
                assertion_type,
                columns=columns,
                values=values,
                preconditions=preconditions,
                thresholds=thresholds,
                active=active,
                brief=brief,
                table_columns=table_columns,
            )
            self.plan = plan
        return index

    def plan_steps(self, source: Path | Iterable[StepConfig]) -> list[int]:
        """Add the steps of a YAML plan file (or parsed step configs) to the plan.

        Either every step is added or, when one is invalid, none are.
        """
        if isinstance(source, Path):
            configs, _ = load_plan(source)
        else:
            configs = list(source)
        table_columns = table_column_names(self.table) if self.table is not None else None
        with self._lock.write():
            plan = self.plan if self.plan is not None else ValidationPlan()
            with plan.batch() as staged:
                indices = apply_plan(staged, configs, table_columns=table_columns)
            self.plan = plan
        return indices

    def interrogate(self, cancel: threading.Event | None = None) -> Agent:
        if self.table is None:
            raise ValueError(f"Agent '{self.name}' has no table to interrogate.")
        if self.plan is None:
            raise PlanNotFoundError(f"Agent '{self.name}' has no validation plan.")
        with self._lock.write():
            summary, extracts = Interrogator(self.settings).interrogate(
                self.plan, self.table, agent_name=self.name, cancel=cancel
            )
            self.summary = summary
            self.extracts = extracts
            self.time = summary.started_at
        return self

    def get_report(
        self, arrange_by: str = "i", keep: str = "all", language: str | None = None
    ) -> AgentReport:
        builder = ReportBuilder(load_language(language or self.settings.reporting_lang))
        with self._lock.read():
            return builder.build(
                self.plan,
                self.extracts,
                arrange_by=arrange_by,
                keep=keep,
                agent_name=self.name,
                agent_time=self.time,
                has_intel=self.has_intel,
            )

    def get_extract(self, i: int) -> pd.DataFrame:
        with self._lock.read():
            extract = self.extracts.get(i)
        if extract is None:
            raise ExtractNotFoundError(f"No failing-row extract for step {i}.")
        return extract.copy()

    def export_extract(self, i: int, directory: Path) -> Path:
        return write_extract(self.get_extract(i), self.name, i, Path(directory))

    def all_passed(self) -> bool:
        """True when every active step was evaluated cleanly with no failing units."""
        if self.plan is None or not self.has_intel:
            return False
        with self._lock.read():
            for step in self.plan:
                if not step.active:
                    continue
                if step.state is not StepState.EVALUATED or step.eval_error:
                    return False
                if step.n is None or step.n_passed != step.n:
                    return False
        return True


def create_agent(
    table: pd.DataFrame | None = None,
    name: str | None = None,
    label: str | None = None,
    settings: AgentSettings | None = None,
) -> Agent:
    return Agent(table=table, name=name, label=label, settings=settings)
