"""Render a step's values payload as report text."""

from __future__ import annotations

from functools import singledispatch
from typing import Any

from dqagent.validate.config import LanguageResource
from dqagent.validate.models import (
    Bound,
    BoundsValues,
    ColumnValue,
    ExpressionValues,
    LiteralValues,
    SchemaValues,
    SubStepValues,
)


def _format_item(item: Any) -> str:
    if item is None:
        return "NULL"
    return str(item)


@singledispatch
def render_values(values: Any, language: LanguageResource) -> str | None:
    return None


@render_values.register
def _(values: LiteralValues, language: LanguageResource) -> str | None:
    return ", ".join(_format_item(item) for item in values.items)


@render_values.register
def _(values: ColumnValue, language: LanguageResource) -> str | None:
    return str(values.column)


def _format_bound(bound: Bound) -> str:
    return _format_item(bound.value)


@render_values.register
def _(values: BoundsValues, language: LanguageResource) -> str | None:
    opening = "[" if values.left.inclusive else "("
    closing = "]" if values.right.inclusive else ")"
    return f"{opening}{_format_bound(values.left)}, {_format_bound(values.right)}{closing}"


@render_values.register
def _(values: SchemaValues, language: LanguageResource) -> str | None:
    caption = language.python_types if values.type_system == "python" else language.sql_types
    entries = ", ".join(f"{name} {kind}".strip() for name, kind in values.columns)
    return f"{language.column_schema} ({caption}): {entries}"


@render_values.register
def _(values: SubStepValues, language: LanguageResource) -> str | None:
    count = len(values.steps)
    return f"{count} {language.step if count == 1 else language.steps}"


@render_values.register
def _(values: ExpressionValues, language: LanguageResource) -> str | None:
    return values.text
