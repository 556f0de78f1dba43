"""Project a validation plan into report rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Mapping

import pandas as pd

from dqagent.errors import PlanNotFoundError, ReportError
from dqagent.report.values import render_values
from dqagent.validate.config import LanguageResource
from dqagent.validate.constants import (
    ARRANGE_CHOICES,
    EVAL_BOTH,
    EVAL_ERROR,
    EVAL_OK,
    EVAL_WARNING,
    KEEP_CHOICES,
    SEVERITY_POINTS,
    SIZE_CHOICES,
)
from dqagent.validate.models import StepRecord, StepState
from dqagent.validate.plan import ValidationPlan

logger = logging.getLogger(__name__)

STANDARD_FIELDS = (
    "i",
    "type",
    "columns",
    "values",
    "precon",
    "active",
    "eval",
    "units",
    "n_pass",
    "f_pass",
    "n_fail",
    "f_fail",
    "W",
    "S",
    "N",
    "extract",
)
SMALL_FIELDS = tuple(name for name in STANDARD_FIELDS if name not in ("columns", "precon", "extract"))


def _check_choice(option: str, value: str, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise ReportError(f"Invalid {option} '{value}' (choose from: {', '.join(choices)}).")


def eval_condition(step: StepRecord) -> str | None:
    if step.state is not StepState.EVALUATED:
        return None
    if step.eval_error and step.eval_warning:
        return EVAL_BOTH
    if step.eval_error:
        return EVAL_ERROR
    if step.eval_warning:
        return EVAL_WARNING
    return EVAL_OK


def severity_score(step: StepRecord) -> int:
    if not step.active:
        return 0
    condition = eval_condition(step)
    score = SEVERITY_POINTS["eval"] if condition not in (None, EVAL_OK) else 0
    score += SEVERITY_POINTS["notify"] if step.notify else 0
    score += SEVERITY_POINTS["stop"] if step.stop else 0
    score += SEVERITY_POINTS["warn"] if step.warn else 0
    return score


@dataclass(frozen=True)
class ReportRow:
    i: int
    type: str
    columns: str | None
    values: str | None
    precon: int | None
    active: bool
    eval: str | None
    units: int | None
    n_pass: int | None
    f_pass: float | None
    n_fail: int | None
    f_fail: float | None
    W: bool | None
    S: bool | None
    N: bool | None
    extract: int | None
    brief: str | None = None
    error: str | None = None
    warning: str | None = None
    score: int = 0

    def project(self, names: tuple[str, ...]) -> dict[str, Any]:
        return {name: getattr(self, name) for name in names}


@dataclass
class AgentReport:
    rows: list[ReportRow]
    language: LanguageResource
    agent_name: str | None = None
    agent_time: datetime | None = None
    has_intel: bool = False
    arrange_by: str = "i"
    keep: str = "all"
    metadata: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[ReportRow]:
        return iter(self.rows)

    @property
    def title(self) -> str:
        return self.language.title if self.has_intel else self.language.plan_title

    @staticmethod
    def fields(size: str = "standard") -> tuple[str, ...]:
        _check_choice("size", size, SIZE_CHOICES)
        return STANDARD_FIELDS if size == "standard" else SMALL_FIELDS

    def to_records(self, size: str = "standard") -> list[dict[str, Any]]:
        names = self.fields(size)
        return [row.project(names) for row in self.rows]

    def to_dataframe(self, size: str = "standard") -> pd.DataFrame:
        return pd.DataFrame(self.to_records(size), columns=list(self.fields(size)))


class ReportBuilder:
    def __init__(self, language: LanguageResource) -> None:
        self.language = language

    def build(
        self,
        plan: ValidationPlan | None,
        extracts: Mapping[int, pd.DataFrame] | None = None,
        arrange_by: str = "i",
        keep: str = "all",
        agent_name: str | None = None,
        agent_time: datetime | None = None,
        has_intel: bool = False,
    ) -> AgentReport:
        _check_choice("arrange_by", arrange_by, ARRANGE_CHOICES)
        _check_choice("keep", keep, KEEP_CHOICES)
        if plan is None:
            raise PlanNotFoundError("The agent has no validation plan to report on.")
        extracts = extracts or {}
        rows = [self.project(step, extracts) for step in plan]
        if arrange_by == "severity":
            rows = sorted(rows, key=lambda row: -row.score)
        if keep == "fail_states":
            rows = [row for row in rows if row.score > 0]
        logger.debug("Built report with %s of %s steps", len(rows), len(plan))
        return AgentReport(
            rows=rows,
            language=self.language,
            agent_name=agent_name,
            agent_time=agent_time,
            has_intel=has_intel,
            arrange_by=arrange_by,
            keep=keep,
        )

    def project(self, step: StepRecord, extracts: Mapping[int, pd.DataFrame]) -> ReportRow:
        evaluated = step.state is StepState.EVALUATED
        n = step.n if evaluated else None
        n_pass = step.n_passed if evaluated else None
        n_fail = n - n_pass if n is not None and n_pass is not None else None
        f_pass = step.f_passed if evaluated else None
        f_fail = n_fail / n if n_fail is not None and n else None
        extract = extracts.get(step.index)
        return ReportRow(
            i=step.index,
            type=step.assertion_type,
            columns=_safe_columns(step),
            values=self._safe_values(step),
            precon=len(step.preconditions) if step.preconditions else None,
            active=step.active,
            eval=eval_condition(step),
            units=n,
            n_pass=n_pass,
            f_pass=f_pass,
            n_fail=n_fail,
            f_fail=f_fail,
            W=step.warn if evaluated else None,
            S=step.stop if evaluated else None,
            N=step.notify if evaluated else None,
            extract=len(extract) if extract is not None and not extract.empty else None,
            brief=step.brief,
            error=step.capture_stack.error,
            warning=step.capture_stack.warning,
            score=severity_score(step),
        )

    def _safe_values(self, step: StepRecord) -> str | None:
        try:
            return render_values(step.values, self.language)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.debug("Could not render values of step %s: %s", step.index, exc)
            return None


def _safe_columns(step: StepRecord) -> str | None:
    label = getattr(step.columns, "label", None)
    return label() if callable(label) else None


def report_summary(report: AgentReport) -> dict[str, Any]:
    """Counts of report rows per evaluation condition and tripped flag."""
    counts: dict[str, Any] = {"steps": len(report.rows)}
    for condition in (EVAL_OK, EVAL_ERROR, EVAL_WARNING, EVAL_BOTH):
        counts[condition] = sum(1 for row in report.rows if row.eval == condition)
    counts["not_evaluated"] = sum(1 for row in report.rows if row.eval is None)
    counts["warn"] = sum(1 for row in report.rows if row.W)
    counts["stop"] = sum(1 for row in report.rows if row.S)
    counts["notify"] = sum(1 for row in report.rows if row.N)
    return counts
