"""Shared constants for validation steps and reports."""

from __future__ import annotations

WILDCARD = "*"

# Test-unit granularity of each assertion type.
UNIT_COLUMN = "column"
UNIT_CELL = "cell"
UNIT_ROW = "row"
UNIT_TABLE = "table"

# Values payload tags accepted by each assertion type; "none" means no payload.
VALUES_NONE = "none"
VALUES_LITERAL = "literal"
VALUES_LITERALS = "literals"
VALUES_COLUMN = "column"
VALUES_BOUNDS = "bounds"
VALUES_SCHEMA = "schema"
VALUES_STEPS = "steps"
VALUES_EXPR = "expr"

_COMPARISON_VALUES = (VALUES_LITERAL, VALUES_COLUMN)

ASSERTION_TYPES: dict[str, tuple[str, tuple[str, ...]]] = {
    "col_exists": (UNIT_COLUMN, (VALUES_NONE,)),
    "col_is_posix": (UNIT_COLUMN, (VALUES_NONE,)),
    "col_is_numeric": (UNIT_COLUMN, (VALUES_NONE,)),
    "col_is_character": (UNIT_COLUMN, (VALUES_NONE,)),
    "col_vals_not_null": (UNIT_CELL, (VALUES_NONE,)),
    "col_vals_null": (UNIT_CELL, (VALUES_NONE,)),
    "col_vals_gt": (UNIT_CELL, _COMPARISON_VALUES),
    "col_vals_gte": (UNIT_CELL, _COMPARISON_VALUES),
    "col_vals_lt": (UNIT_CELL, _COMPARISON_VALUES),
    "col_vals_lte": (UNIT_CELL, _COMPARISON_VALUES),
    "col_vals_equal": (UNIT_CELL, _COMPARISON_VALUES),
    "col_vals_not_equal": (UNIT_CELL, _COMPARISON_VALUES),
    "col_vals_between": (UNIT_CELL, (VALUES_BOUNDS,)),
    "col_vals_not_between": (UNIT_CELL, (VALUES_BOUNDS,)),
    "col_vals_in_set": (UNIT_CELL, (VALUES_LITERALS, VALUES_LITERAL)),
    "col_vals_not_in_set": (UNIT_CELL, (VALUES_LITERALS, VALUES_LITERAL)),
    "col_vals_regex": (UNIT_CELL, (VALUES_LITERAL,)),
    "col_vals_expr": (UNIT_ROW, (VALUES_EXPR,)),
    "rows_distinct": (UNIT_ROW, (VALUES_NONE,)),
    "col_schema_match": (UNIT_TABLE, (VALUES_SCHEMA,)),
    "conjointly": (UNIT_ROW, (VALUES_STEPS,)),
}

# Assertion types that need at least one target column.
COLUMN_REQUIRED = frozenset(
    name
    for name, (unit, _) in ASSERTION_TYPES.items()
    if unit in (UNIT_COLUMN, UNIT_CELL)
)

COMPARISON_OPERATORS = {
    "col_vals_gt": ">",
    "col_vals_gte": ">=",
    "col_vals_lt": "<",
    "col_vals_lte": "<=",
    "col_vals_equal": "=",
    "col_vals_not_equal": "<>",
}

THRESHOLD_KINDS = ("report_count", "warn_count", "stop_count", "notify_count")

EVAL_OK = "OK"
EVAL_ERROR = "ERROR"
EVAL_WARNING = "WARNING"
EVAL_BOTH = "W + E"

SEVERITY_POINTS = {"eval": 10, "notify": 3, "stop": 2, "warn": 1}

ARRANGE_CHOICES = ("i", "severity")
KEEP_CHOICES = ("all", "fail_states")
SIZE_CHOICES = ("standard", "small")

EXTRACT_NAME_WIDTH = 4

NUMERIC_KEYWORDS = ("INT", "FLOAT", "DOUBLE", "REAL", "NUMERIC", "DECIMAL", "MONEY")
TEXT_KEYWORDS = ("CHAR", "CLOB", "TEXT", "STRING")
TEMPORAL_KEYWORDS = ("TIMESTAMP", "DATETIME")
