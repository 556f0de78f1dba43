"""Data models for validation plans, step records and interrogation results."""

from __future__ import annotations

import enum
import math
import numbers
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ClassVar, Iterator, Mapping, Union

import pandas as pd

from dqagent.errors import InvalidStepError
from dqagent.validate.constants import (
    THRESHOLD_KINDS,
    VALUES_BOUNDS,
    VALUES_COLUMN,
    VALUES_EXPR,
    VALUES_LITERAL,
    VALUES_LITERALS,
    VALUES_SCHEMA,
    VALUES_STEPS,
)


@dataclass(frozen=True)
class ColumnRef:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ColumnSpec:
    """Columns targeted by a step, resolved when the step is added."""

    names: tuple[str, ...] = ()
    wildcard: bool = False

    def label(self) -> str | None:
        return ", ".join(self.names) if self.names else None

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)


class StepValues:
    """Base class of the values payload variants carried by a step."""

    kind: ClassVar[str] = ""


@dataclass(frozen=True)
class LiteralValues(StepValues):
    items: tuple[Any, ...]

    @property
    def kind(self) -> str:  # type: ignore[override]
        return VALUES_LITERAL if len(self.items) == 1 else VALUES_LITERALS


@dataclass(frozen=True)
class ColumnValue(StepValues):
    column: ColumnRef
    kind: ClassVar[str] = VALUES_COLUMN


@dataclass(frozen=True)
class Bound:
    value: Any
    inclusive: bool = True

    @property
    def is_column(self) -> bool:
        return isinstance(self.value, ColumnRef)


@dataclass(frozen=True)
class BoundsValues(StepValues):
    left: Bound
    right: Bound
    kind: ClassVar[str] = VALUES_BOUNDS


@dataclass(frozen=True)
class SchemaValues(StepValues):
    columns: tuple[tuple[str, str], ...]
    type_system: str = "sql"
    complete: bool = True
    in_order: bool = True
    kind: ClassVar[str] = VALUES_SCHEMA


@dataclass(frozen=True)
class SubStep:
    assertion_type: str
    columns: ColumnSpec = ColumnSpec()
    values: StepValues | None = None


@dataclass(frozen=True)
class SubStepValues(StepValues):
    steps: tuple[SubStep, ...]
    kind: ClassVar[str] = VALUES_STEPS


@dataclass(frozen=True)
class ExpressionValues(StepValues):
    text: str
    kind: ClassVar[str] = VALUES_EXPR


PreconditionStatement = Union[Callable[[pd.DataFrame], pd.DataFrame], str]


@dataclass(frozen=True)
class Preconditions:
    """Table transformations applied, in order, before a step is evaluated.

    A string statement is a DuckDB query that reads the current table as ``tbl``.
    """

    statements: tuple[PreconditionStatement, ...]

    def __len__(self) -> int:
        return len(self.statements)

    def describe(self) -> str:
        return "; ".join(
            statement if isinstance(statement, str) else getattr(statement, "__name__", repr(statement))
            for statement in self.statements
        )


@dataclass(frozen=True)
class Thresholds:
    """Failure limits for a step.

    Integers are absolute failing-unit counts, floats are fractions of the
    total number of test units.
    """

    report_count: float | None = None
    warn_count: float | None = None
    stop_count: float | None = None
    notify_count: float | None = None

    @classmethod
    def coerce(cls, value: Thresholds | Mapping[str, Any] | None) -> Thresholds:
        if value is None:
            return cls()
        if isinstance(value, Thresholds):
            return value
        if isinstance(value, Mapping):
            unknown = set(value) - set(THRESHOLD_KINDS)
            if unknown:
                raise InvalidStepError(f"Unknown threshold kinds: {', '.join(sorted(unknown))}.")
            return cls(**dict(value))
        raise InvalidStepError(f"Thresholds must be a mapping or Thresholds, got {type(value).__name__}.")

    def validate(self) -> None:
        for kind in THRESHOLD_KINDS:
            limit = getattr(self, kind)
            if limit is None:
                continue
            if isinstance(limit, bool) or not isinstance(limit, numbers.Real):
                raise InvalidStepError(f"Threshold {kind} must be a number, got {limit!r}.")
            if math.isnan(limit) or limit < 0:
                raise InvalidStepError(f"Threshold {kind} must not be negative, got {limit!r}.")
            if is_fraction(limit) and limit > 1.0:
                raise InvalidStepError(f"Fractional threshold {kind}={limit} exceeds 1.0.")

    def is_set(self, kind: str) -> bool:
        return getattr(self, kind) is not None


def is_fraction(limit: float) -> bool:
    return not isinstance(limit, numbers.Integral)


@dataclass
class CaptureStack:
    error: str | None = None
    warning: str | None = None


class StepState(str, enum.Enum):
    PLANNED = "planned"
    SKIPPED = "skipped"
    EVALUATED = "evaluated"


@dataclass
class StepRecord:
    index: int
    assertion_type: str
    columns: ColumnSpec
    values: StepValues | None
    preconditions: Preconditions | None
    thresholds: Thresholds
    active: bool = True
    brief: str | None = None
    n: int | None = None
    n_passed: int | None = None
    f_passed: float | None = None
    warn: bool | None = None
    stop: bool | None = None
    notify: bool | None = None
    eval_error: bool | None = None
    eval_warning: bool | None = None
    capture_stack: CaptureStack = field(default_factory=CaptureStack)
    state: StepState = StepState.PLANNED
    time_processed: datetime | None = None
    proc_duration_s: float | None = None

    def reset(self) -> None:
        self.n = None
        self.n_passed = None
        self.f_passed = None
        self.warn = None
        self.stop = None
        self.notify = None
        self.eval_error = None
        self.eval_warning = None
        self.capture_stack = CaptureStack()
        self.state = StepState.PLANNED
        self.time_processed = None
        self.proc_duration_s = None


@dataclass
class PredicateOutcome:
    n: int
    n_passed: int
    failing_rows: pd.DataFrame | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class StepResult:
    index: int
    outcome: PredicateOutcome | None
    error: str | None
    warnings: list[str]
    time_processed: datetime
    proc_duration_s: float


@dataclass
class InterrogationSummary:
    agent_name: str
    started_at: datetime
    finished_at: datetime
    steps_total: int
    evaluated: int
    skipped: int
    errored: int
    warned: int
    cancelled: bool
