"""The validation plan: an ordered, append-only collection of step records."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from contextlib import contextmanager
from typing import Any, Iterator

from dqagent.errors import InvalidStepError
from dqagent.validate.constants import (
    ASSERTION_TYPES,
    COLUMN_REQUIRED,
    UNIT_CELL,
    UNIT_ROW,
    VALUES_NONE,
    WILDCARD,
)
from dqagent.validate.models import (
    ColumnRef,
    ColumnSpec,
    ColumnValue,
    LiteralValues,
    Preconditions,
    StepRecord,
    StepValues,
    SubStep,
    SubStepValues,
    Thresholds,
)

logger = logging.getLogger(__name__)

ColumnsArg = ColumnSpec | ColumnRef | str | Sequence[str | ColumnRef] | None


class ValidationPlan:
    def __init__(self) -> None:
        self._steps: list[StepRecord] = []

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepRecord]:
        return iter(self._steps)

    @property
    def steps(self) -> tuple[StepRecord, ...]:
        return tuple(self._steps)

    def get(self, index: int) -> StepRecord:
        if index < 1 or index > len(self._steps):
            raise KeyError(f"No validation step with index {index}.")
        return self._steps[index - 1]

    @contextmanager
    def batch(self) -> Iterator[ValidationPlan]:
        """Yield a scratch copy of the plan; its new steps are kept only if the block completes."""
        staged = ValidationPlan()
        staged._steps = list(self._steps)
        yield staged
        self._steps = staged._steps

    def add_step(
        self,
        assertion_type: str,
        columns: ColumnsArg = None,
        values: Any = None,
        preconditions: Any = None,
        thresholds: Any = None,
        active: bool = True,
        brief: str | None = None,
        table_columns: Sequence[str] | None = None,
    ) -> int:
        """Validate a step configuration and append it; returns the new step index."""
        if assertion_type not in ASSERTION_TYPES:
            raise InvalidStepError(f"Unknown assertion type '{assertion_type}'.")
        column_spec = resolve_columns(columns, table_columns)
        if assertion_type in COLUMN_REQUIRED and not column_spec.names:
            raise InvalidStepError(f"Assertion type '{assertion_type}' needs at least one column.")
        step_values = coerce_values(values)
        _check_values(assertion_type, step_values)
        if isinstance(step_values, SubStepValues):
            step_values = _resolve_sub_steps(step_values, table_columns)
        limits = Thresholds.coerce(thresholds)
        limits.validate()
        record = StepRecord(
            index=len(self._steps) + 1,
            assertion_type=assertion_type,
            columns=column_spec,
            values=step_values,
            preconditions=coerce_preconditions(preconditions),
            thresholds=limits,
            active=bool(active),
            brief=brief or default_brief(assertion_type, column_spec),
        )
        self._steps.append(record)
        logger.debug("Added step %s (%s) on %s", record.index, assertion_type, column_spec.label())
        return record.index


def resolve_columns(columns: ColumnsArg, table_columns: Sequence[str] | None) -> ColumnSpec:
    if columns is None:
        return ColumnSpec()
    if isinstance(columns, ColumnSpec):
        return columns
    if isinstance(columns, (str, ColumnRef)):
        columns = [columns]
    names = [str(column) for column in columns]
    if names and names[0] == WILDCARD:
        if table_columns is None:
            raise InvalidStepError("Cannot expand '*' without a target table.")
        return ColumnSpec(names=tuple(table_columns), wildcard=True)
    if any(not name for name in names):
        raise InvalidStepError("Column names must not be empty.")
    return ColumnSpec(names=tuple(names))


def coerce_values(values: Any) -> StepValues | None:
    if values is None or isinstance(values, StepValues):
        return values
    if isinstance(values, ColumnRef):
        return ColumnValue(values)
    if isinstance(values, (list, tuple, set, frozenset)):
        items = sorted(values, key=str) if isinstance(values, (set, frozenset)) else values
        return LiteralValues(tuple(items))
    return LiteralValues((values,))


def coerce_preconditions(preconditions: Any) -> Preconditions | None:
    if preconditions is None or isinstance(preconditions, Preconditions):
        return preconditions
    if isinstance(preconditions, str) or callable(preconditions):
        statements: Iterable[Any] = (preconditions,)
    elif isinstance(preconditions, (list, tuple)):
        statements = preconditions
    else:
        raise InvalidStepError(
            f"Preconditions must be callables or SQL strings, got {type(preconditions).__name__}."
        )
    statements = tuple(statements)
    for statement in statements:
        if not isinstance(statement, str) and not callable(statement):
            raise InvalidStepError(f"Invalid precondition statement {statement!r}.")
    if not statements:
        return None
    return Preconditions(statements)


def _check_values(assertion_type: str, values: StepValues | None) -> None:
    _, accepted = ASSERTION_TYPES[assertion_type]
    kind = values.kind if values is not None else VALUES_NONE
    if kind not in accepted:
        raise InvalidStepError(
            f"Assertion type '{assertion_type}' does not accept '{kind}' values "
            f"(expected one of: {', '.join(accepted)})."
        )


def _resolve_sub_steps(values: SubStepValues, table_columns: Sequence[str] | None) -> SubStepValues:
    if not values.steps:
        raise InvalidStepError("A conjoint step needs at least one sub-step.")
    resolved: list[SubStep] = []
    for sub_step in values.steps:
        unit = ASSERTION_TYPES.get(sub_step.assertion_type, (None, ()))[0]
        if unit not in (UNIT_CELL, UNIT_ROW) or sub_step.assertion_type in ("rows_distinct", "conjointly"):
            raise InvalidStepError(
                f"'{sub_step.assertion_type}' cannot be used as a row-wise sub-step."
            )
        column_spec = resolve_columns(sub_step.columns, table_columns)
        if sub_step.assertion_type in COLUMN_REQUIRED and not column_spec.names:
            raise InvalidStepError(f"Sub-step '{sub_step.assertion_type}' needs at least one column.")
        sub_values = coerce_values(sub_step.values)
        _check_values(sub_step.assertion_type, sub_values)
        resolved.append(SubStep(sub_step.assertion_type, column_spec, sub_values))
    return SubStepValues(tuple(resolved))


def default_brief(assertion_type: str, columns: ColumnSpec) -> str:
    label = columns.label()
    if label:
        return f"Expect that {assertion_type} holds for {label}."
    return f"Expect that {assertion_type} holds."
