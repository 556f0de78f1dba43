"""DuckDB predicate evaluator for validation steps."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

import duckdb
import pandas as pd

from dqagent.errors import EvaluationError
from dqagent.validate.constants import COMPARISON_OPERATORS
from dqagent.validate.metadata import (
    TableMetadata,
    collect_table_metadata,
    is_numeric_type,
    is_temporal_type,
    is_text_type,
)
from dqagent.validate.models import (
    BoundsValues,
    ColumnRef,
    ColumnSpec,
    ColumnValue,
    ExpressionValues,
    LiteralValues,
    PredicateOutcome,
    SchemaValues,
    StepRecord,
    StepValues,
    SubStepValues,
)
from dqagent.validate.query_utils import TABLE_ALIAS, QueryExecutorMixin, quote_ident, sql_value

logger = logging.getLogger(__name__)

Handler = Callable[[duckdb.DuckDBPyConnection, StepRecord, TableMetadata], PredicateOutcome]

_TYPE_CHECKS: dict[str, Callable[[str], bool]] = {
    "col_is_posix": is_temporal_type,
    "col_is_numeric": is_numeric_type,
    "col_is_character": is_text_type,
}


class RuleEvaluator(QueryExecutorMixin):
    def __init__(self, extract_failed: bool = True, extract_limit: int | None = None) -> None:
        self.extract_failed = extract_failed
        self.extract_limit = extract_limit

    def evaluate(
        self, con: duckdb.DuckDBPyConnection, table: pd.DataFrame, step: StepRecord
    ) -> PredicateOutcome:
        handler: Handler | None = {
            "col_exists": self._handle_col_exists,
            "col_is_posix": self._handle_column_type,
            "col_is_numeric": self._handle_column_type,
            "col_is_character": self._handle_column_type,
            "col_vals_not_null": self._handle_cells,
            "col_vals_null": self._handle_cells,
            "col_vals_gt": self._handle_cells,
            "col_vals_gte": self._handle_cells,
            "col_vals_lt": self._handle_cells,
            "col_vals_lte": self._handle_cells,
            "col_vals_equal": self._handle_cells,
            "col_vals_not_equal": self._handle_cells,
            "col_vals_between": self._handle_cells,
            "col_vals_not_between": self._handle_cells,
            "col_vals_in_set": self._handle_cells,
            "col_vals_not_in_set": self._handle_cells,
            "col_vals_regex": self._handle_cells,
            "col_vals_expr": self._handle_expression,
            "rows_distinct": self._handle_rows_distinct,
            "col_schema_match": self._handle_col_schema_match,
            "conjointly": self._handle_conjointly,
        }.get(step.assertion_type)
        if not handler:
            raise EvaluationError(f"No handler for assertion type {step.assertion_type}")
        metadata = collect_table_metadata(con, table)
        return handler(con, step, metadata)

    def _handle_col_exists(
        self, con: duckdb.DuckDBPyConnection, step: StepRecord, metadata: TableMetadata
    ) -> PredicateOutcome:
        passed = sum(1 for column in step.columns if metadata.has_column(column))
        return PredicateOutcome(n=len(step.columns), n_passed=passed)

    def _handle_column_type(
        self, con: duckdb.DuckDBPyConnection, step: StepRecord, metadata: TableMetadata
    ) -> PredicateOutcome:
        _require_columns(metadata, step.columns)
        check = _TYPE_CHECKS[step.assertion_type]
        passed = sum(1 for column in step.columns if check(metadata.sql_types[column]))
        return PredicateOutcome(n=len(step.columns), n_passed=passed)

    def _handle_cells(
        self, con: duckdb.DuckDBPyConnection, step: StepRecord, metadata: TableMetadata
    ) -> PredicateOutcome:
        _require_columns(metadata, step.columns)
        _require_value_columns(metadata, step.values)
        conditions = [
            cell_failure_condition(step.assertion_type, column, step.values)
            for column in step.columns
        ]
        row_count = self._count_rows(con)
        failures = sum(self._count_condition(con, condition) for condition in conditions)
        n = row_count * len(conditions)
        outcome = self._outcome(con, n, n - failures, _any_of(conditions))
        outcome.warnings.extend(_cell_warnings(step, metadata))
        return outcome

    def _handle_expression(
        self, con: duckdb.DuckDBPyConnection, step: StepRecord, metadata: TableMetadata
    ) -> PredicateOutcome:
        condition = cell_failure_condition(step.assertion_type, None, step.values)
        row_count = self._count_rows(con)
        failures = self._count_condition(con, condition)
        return self._outcome(con, row_count, row_count - failures, condition)

    def _handle_rows_distinct(
        self, con: duckdb.DuckDBPyConnection, step: StepRecord, metadata: TableMetadata
    ) -> PredicateOutcome:
        columns = list(step.columns) or metadata.columns
        _require_columns(metadata, columns)
        partition_cols = ", ".join(quote_ident(column) for column in columns)
        failure_query = (
            f"SELECT * FROM {TABLE_ALIAS} "
            f"QUALIFY COUNT(*) OVER (PARTITION BY {partition_cols}) > 1"
        )
        row_count = self._count_rows(con)
        failures = self._count_matches(con, failure_query)
        return self._outcome_from_query(con, row_count, row_count - failures, failure_query)

    def _handle_conjointly(
        self, con: duckdb.DuckDBPyConnection, step: StepRecord, metadata: TableMetadata
    ) -> PredicateOutcome:
        values = step.values
        if not isinstance(values, SubStepValues):
            raise EvaluationError("A conjoint step requires sub-steps.")
        conditions: list[str] = []
        for sub_step in values.steps:
            _require_columns(metadata, sub_step.columns)
            _require_value_columns(metadata, sub_step.values)
            if sub_step.assertion_type == "col_vals_expr":
                conditions.append(cell_failure_condition(sub_step.assertion_type, None, sub_step.values))
                continue
            conditions.extend(
                cell_failure_condition(sub_step.assertion_type, column, sub_step.values)
                for column in sub_step.columns
            )
        condition = _any_of(conditions)
        row_count = self._count_rows(con)
        failures = self._count_condition(con, condition)
        return self._outcome(con, row_count, row_count - failures, condition)

    def _handle_col_schema_match(
        self, con: duckdb.DuckDBPyConnection, step: StepRecord, metadata: TableMetadata
    ) -> PredicateOutcome:
        schema = step.values
        if not isinstance(schema, SchemaValues):
            raise EvaluationError("A schema match step requires a column schema.")
        actual = metadata.python_types if schema.type_system == "python" else metadata.sql_types
        problems = schema_mismatches(schema, metadata.columns, actual)
        for problem in problems:
            logger.debug("Schema mismatch: %s", problem)
        return PredicateOutcome(n=1, n_passed=0 if problems else 1)

    def _outcome(
        self, con: duckdb.DuckDBPyConnection, n: int, n_passed: int, failure_condition: str
    ) -> PredicateOutcome:
        query = f"SELECT * FROM {TABLE_ALIAS} WHERE {failure_condition}"
        return self._outcome_from_query(con, n, n_passed, query)

    def _outcome_from_query(
        self, con: duckdb.DuckDBPyConnection, n: int, n_passed: int, query: str
    ) -> PredicateOutcome:
        failing_rows = None
        if self.extract_failed and n_passed < n:
            failing_rows = self._fetch_failing_rows(con, query, self.extract_limit)
        return PredicateOutcome(n=n, n_passed=n_passed, failing_rows=failing_rows)


def cell_failure_condition(
    assertion_type: str, column: str | None, values: StepValues | None
) -> str:
    """SQL condition that is true for every row failing the assertion on `column`."""
    if assertion_type == "col_vals_expr":
        if not isinstance(values, ExpressionValues):
            raise EvaluationError("An expression step requires an expression.")
        return f"({values.text}) IS NOT TRUE"
    if column is None:
        raise EvaluationError(f"Assertion type '{assertion_type}' requires a column.")
    col = quote_ident(column)
    if assertion_type == "col_vals_not_null":
        return f"{col} IS NULL"
    if assertion_type == "col_vals_null":
        return f"{col} IS NOT NULL"
    if assertion_type in COMPARISON_OPERATORS:
        operator = COMPARISON_OPERATORS[assertion_type]
        return f"({col} {operator} {_comparison_operand(values)}) IS NOT TRUE"
    if assertion_type in ("col_vals_between", "col_vals_not_between"):
        if not isinstance(values, BoundsValues):
            raise EvaluationError(f"'{assertion_type}' requires a pair of bounds.")
        left_op = ">=" if values.left.inclusive else ">"
        right_op = "<=" if values.right.inclusive else "<"
        inside = (
            f"{col} {left_op} {sql_value(values.left.value)} "
            f"AND {col} {right_op} {sql_value(values.right.value)}"
        )
        if assertion_type == "col_vals_between":
            return f"({inside}) IS NOT TRUE"
        return f"(NOT ({inside})) IS NOT TRUE"
    if assertion_type in ("col_vals_in_set", "col_vals_not_in_set"):
        items = _literal_items(values)
        allow_null = any(item is None for item in items)
        members = [sql_value(item) for item in items if item is not None]
        membership = f"{col} IN ({', '.join(members)})" if members else "FALSE"
        if assertion_type == "col_vals_in_set":
            if allow_null:
                return f"({membership} OR {col} IS NULL) IS NOT TRUE"
            return f"({membership}) IS NOT TRUE"
        if allow_null:
            return f"({col} IS NOT NULL AND NOT ({membership})) IS NOT TRUE"
        return f"(NOT ({membership})) IS NOT TRUE"
    if assertion_type == "col_vals_regex":
        pattern = _literal_items(values)[0]
        return f"regexp_matches(CAST({col} AS VARCHAR), {sql_value(str(pattern))}) IS NOT TRUE"
    raise EvaluationError(f"Assertion type '{assertion_type}' is not a row-wise check.")


def schema_mismatches(
    schema: SchemaValues, actual_columns: list[str], actual_types: dict[str, str]
) -> list[str]:
    problems: list[str] = []
    expected_names = [name for name, _ in schema.columns]
    missing = [name for name in expected_names if name not in actual_types]
    if missing:
        problems.append(f"missing columns: {', '.join(missing)}")
    if schema.complete:
        extra = [name for name in actual_columns if name not in expected_names]
        if extra:
            problems.append(f"unexpected columns: {', '.join(extra)}")
    if schema.in_order:
        observed = [name for name in actual_columns if name in expected_names]
        present = [name for name in expected_names if name in actual_types]
        if observed != present:
            problems.append("columns are out of order")
    for name, expected_type in schema.columns:
        if name not in actual_types or expected_type in ("", "*"):
            continue
        if actual_types[name].lower() != str(expected_type).lower():
            problems.append(f"{name}: expected {expected_type}, found {actual_types[name]}")
    return problems


def _comparison_operand(values: StepValues | None) -> str:
    if isinstance(values, ColumnValue):
        return quote_ident(values.column.name)
    if isinstance(values, LiteralValues) and len(values.items) == 1:
        return sql_value(values.items[0])
    raise EvaluationError("A comparison requires a single value or a column.")


def _literal_items(values: StepValues | None) -> tuple[Any, ...]:
    if isinstance(values, LiteralValues) and values.items:
        return values.items
    raise EvaluationError("This assertion requires literal values.")


def _any_of(conditions: Iterable[str]) -> str:
    parts = [f"({condition})" for condition in conditions]
    return " OR ".join(parts) if parts else "FALSE"


def _require_columns(metadata: TableMetadata, columns: ColumnSpec | Iterable[str]) -> None:
    missing = [column for column in columns if not metadata.has_column(column)]
    if missing:
        raise EvaluationError(f"Column(s) not found in table: {', '.join(missing)}.")


def _require_value_columns(metadata: TableMetadata, values: StepValues | None) -> None:
    refs: list[ColumnRef] = []
    if isinstance(values, ColumnValue):
        refs.append(values.column)
    elif isinstance(values, BoundsValues):
        refs.extend(bound.value for bound in (values.left, values.right) if bound.is_column)
    _require_columns(metadata, [ref.name for ref in refs])


def _cell_warnings(step: StepRecord, metadata: TableMetadata) -> list[str]:
    if step.assertion_type != "col_vals_regex":
        return []
    return [
        f"Column '{column}' is not a text column; values were cast to VARCHAR."
        for column in step.columns
        if not is_text_type(metadata.sql_types[column])
    ]
