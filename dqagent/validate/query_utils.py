"""DuckDB execution helpers for predicate evaluation."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

import duckdb
import pandas as pd

from dqagent.validate.models import ColumnRef

TABLE_ALIAS = "tbl"


def quote_ident(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def sql_value(value: Any) -> str:
    """Render a literal or column reference as a DuckDB SQL operand."""
    if isinstance(value, ColumnRef):
        return quote_ident(value.name)
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return "'NaN'::DOUBLE"
        return repr(value)
    if isinstance(value, datetime):
        return f"TIMESTAMP {quote_literal(value.isoformat(sep=' '))}"
    if isinstance(value, date):
        return f"DATE {quote_literal(value.isoformat())}"
    return quote_literal(str(value))


def register_table(con: duckdb.DuckDBPyConnection, table: pd.DataFrame) -> None:
    con.register(TABLE_ALIAS, table)


class QueryExecutorMixin:
    @staticmethod
    def _count_rows(con: duckdb.DuckDBPyConnection) -> int:
        return int(con.execute(f"SELECT COUNT(*) FROM {TABLE_ALIAS}").fetchone()[0])

    @staticmethod
    def _count_matches(con: duckdb.DuckDBPyConnection, query: str) -> int:
        return int(con.execute(f"SELECT COUNT(*) FROM ({query}) AS dq_failures").fetchone()[0])

    @staticmethod
    def _count_condition(con: duckdb.DuckDBPyConnection, condition: str) -> int:
        return int(
            con.execute(
                f"SELECT COUNT(*) FROM {TABLE_ALIAS} WHERE {condition}"
            ).fetchone()[0]
        )

    @staticmethod
    def _fetch_failing_rows(
        con: duckdb.DuckDBPyConnection, query: str, limit: int | None
    ) -> pd.DataFrame:
        limit_clause = f" LIMIT {int(limit)}" if limit is not None else ""
        return con.execute(f"SELECT * FROM ({query}) AS dq_extract{limit_clause}").df()
