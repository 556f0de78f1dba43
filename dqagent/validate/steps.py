"""Fluent step builders mixed into the agent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence, TypeVar

from dqagent.validate.models import (
    Bound,
    BoundsValues,
    ColumnRef,
    ExpressionValues,
    SchemaValues,
    SubStep,
    SubStepValues,
)
from dqagent.validate.plan import ColumnsArg

T = TypeVar("T", bound="StepFactoryMixin")


def _bound(value: Any, inclusive: bool) -> Bound:
    if isinstance(value, Bound):
        return value
    return Bound(value, inclusive)


class StepFactoryMixin(ABC):
    """One method per assertion type; each appends a step and returns the agent."""

    @abstractmethod
    def add_step(self, assertion_type: str, **kwargs: Any) -> int:
        """Append a step to the plan and return its index."""

    def _step(self: T, assertion_type: str, columns: ColumnsArg, values: Any = None, **options: Any) -> T:
        self.add_step(assertion_type, columns=columns, values=values, **options)
        return self

    def col_exists(self: T, columns: ColumnsArg, **options: Any) -> T:
        return self._step("col_exists", columns, **options)

    def col_is_posix(self: T, columns: ColumnsArg, **options: Any) -> T:
        return self._step("col_is_posix", columns, **options)

    def col_is_numeric(self: T, columns: ColumnsArg, **options: Any) -> T:
        return self._step("col_is_numeric", columns, **options)

    def col_is_character(self: T, columns: ColumnsArg, **options: Any) -> T:
        return self._step("col_is_character", columns, **options)

    def col_vals_not_null(self: T, columns: ColumnsArg, **options: Any) -> T:
        return self._step("col_vals_not_null", columns, **options)

    def col_vals_null(self: T, columns: ColumnsArg, **options: Any) -> T:
        return self._step("col_vals_null", columns, **options)

    def col_vals_gt(self: T, columns: ColumnsArg, value: Any, **options: Any) -> T:
        return self._step("col_vals_gt", columns, value, **options)

    def col_vals_gte(self: T, columns: ColumnsArg, value: Any, **options: Any) -> T:
        return self._step("col_vals_gte", columns, value, **options)

    def col_vals_lt(self: T, columns: ColumnsArg, value: Any, **options: Any) -> T:
        return self._step("col_vals_lt", columns, value, **options)

    def col_vals_lte(self: T, columns: ColumnsArg, value: Any, **options: Any) -> T:
        return self._step("col_vals_lte", columns, value, **options)

    def col_vals_equal(self: T, columns: ColumnsArg, value: Any, **options: Any) -> T:
        return self._step("col_vals_equal", columns, value, **options)

    def col_vals_not_equal(self: T, columns: ColumnsArg, value: Any, **options: Any) -> T:
        return self._step("col_vals_not_equal", columns, value, **options)

    def col_vals_between(
        self: T,
        columns: ColumnsArg,
        left: Any,
        right: Any,
        inclusive: tuple[bool, bool] = (True, True),
        **options: Any,
    ) -> T:
        bounds = BoundsValues(_bound(left, inclusive[0]), _bound(right, inclusive[1]))
        return self._step("col_vals_between", columns, bounds, **options)

    def col_vals_not_between(
        self: T,
        columns: ColumnsArg,
        left: Any,
        right: Any,
        inclusive: tuple[bool, bool] = (True, True),
        **options: Any,
    ) -> T:
        bounds = BoundsValues(_bound(left, inclusive[0]), _bound(right, inclusive[1]))
        return self._step("col_vals_not_between", columns, bounds, **options)

    def col_vals_in_set(self: T, columns: ColumnsArg, members: Sequence[Any], **options: Any) -> T:
        return self._step("col_vals_in_set", columns, list(members), **options)

    def col_vals_not_in_set(self: T, columns: ColumnsArg, members: Sequence[Any], **options: Any) -> T:
        return self._step("col_vals_not_in_set", columns, list(members), **options)

    def col_vals_regex(self: T, columns: ColumnsArg, pattern: str, **options: Any) -> T:
        return self._step("col_vals_regex", columns, pattern, **options)

    def col_vals_expr(self: T, expr: str, **options: Any) -> T:
        return self._step("col_vals_expr", None, ExpressionValues(expr), **options)

    def rows_distinct(self: T, columns: ColumnsArg = None, **options: Any) -> T:
        return self._step("rows_distinct", columns, **options)

    def col_schema_match(
        self: T,
        schema: Mapping[str, str],
        type_system: str = "sql",
        complete: bool = True,
        in_order: bool = True,
        **options: Any,
    ) -> T:
        values = SchemaValues(
            columns=tuple((str(name), str(kind)) for name, kind in schema.items()),
            type_system=type_system,
            complete=complete,
            in_order=in_order,
        )
        return self._step("col_schema_match", None, values, **options)

    def conjointly(self: T, *steps: SubStep | tuple[Any, ...], **options: Any) -> T:
        """Add a row-wise step that passes only where every sub-step passes.

        Sub-steps are given as `SubStep` objects or `(assertion_type,
        columns, values)` tuples.
        """
        sub_steps = []
        for item in steps:
            if isinstance(item, SubStep):
                sub_steps.append(item)
                continue
            assertion_type, columns, *rest = item
            if isinstance(columns, (str, ColumnRef)):
                columns = [columns]
            sub_steps.append(
                SubStep(assertion_type, columns=columns, values=rest[0] if rest else None)
            )
        return self._step("conjointly", None, SubStepValues(tuple(sub_steps)), **options)
