"""Collect column metadata about the table a step is evaluated against."""

from __future__ import annotations

from dataclasses import dataclass

import duckdb
import pandas as pd

from dqagent.validate.constants import NUMERIC_KEYWORDS, TEMPORAL_KEYWORDS, TEXT_KEYWORDS
from dqagent.validate.query_utils import TABLE_ALIAS


@dataclass
class TableMetadata:
    columns: list[str]
    sql_types: dict[str, str]
    python_types: dict[str, str]

    def has_column(self, name: str) -> bool:
        return name in self.sql_types


def collect_table_metadata(
    con: duckdb.DuckDBPyConnection, table: pd.DataFrame
) -> TableMetadata:
    rows = con.execute(f"DESCRIBE {TABLE_ALIAS}").fetchall()
    columns = [row[0] for row in rows]
    sql_types = {row[0]: str(row[1]) for row in rows}
    python_types = {str(name): str(dtype) for name, dtype in table.dtypes.items()}
    return TableMetadata(columns=columns, sql_types=sql_types, python_types=python_types)


def table_column_names(table: pd.DataFrame) -> list[str]:
    return [str(column) for column in table.columns]


def is_numeric_type(type_name: str) -> bool:
    upper = type_name.upper()
    if upper.startswith("INTERVAL"):
        return False
    return any(keyword in upper for keyword in NUMERIC_KEYWORDS)


def is_text_type(type_name: str) -> bool:
    return any(keyword in type_name.upper() for keyword in TEXT_KEYWORDS)


def is_temporal_type(type_name: str) -> bool:
    return any(keyword in type_name.upper() for keyword in TEMPORAL_KEYWORDS)
