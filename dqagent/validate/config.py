"""Helpers for loading agent settings, reporting languages and plan files."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Iterable, Protocol, Sequence

import yaml

from dqagent.errors import InvalidStepError, ReportError
from dqagent.validate.models import (
    Bound,
    BoundsValues,
    ColumnRef,
    ColumnValue,
    ExpressionValues,
    SchemaValues,
    StepValues,
    SubStep,
    SubStepValues,
)

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"
DEFAULTS_PATH = CONFIG_DIR / "defaults.yml"
LANGUAGE_PATH = CONFIG_DIR / "reporting_lang.yml"
DEFAULT_LANGUAGE = "en"

# Rules whose single argument is taken verbatim instead of split on commas.
RAW_ARGUMENT_RULES = frozenset({"col_vals_regex", "col_vals_expr"})


@dataclass(frozen=True)
class AgentSettings:
    extract_failed: bool = True
    extract_limit: int | None = None
    step_timeout: float | None = None
    max_workers: int = 1
    reporting_lang: str = DEFAULT_LANGUAGE

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.step_timeout is not None and self.step_timeout <= 0:
            raise ValueError("step_timeout must be positive")
        if self.extract_limit is not None and self.extract_limit < 0:
            raise ValueError("extract_limit must not be negative")


def load_settings(path: Path | None = None, **overrides: Any) -> AgentSettings:
    source = path or DEFAULTS_PATH
    raw: dict[str, Any] = {}
    if source.exists():
        raw = yaml.safe_load(source.read_text()) or {}
    known = {item.name for item in fields(AgentSettings)}
    values = {key: value for key, value in raw.items() if key in known}
    values.update({key: value for key, value in overrides.items() if value is not None})
    return AgentSettings(**values)


@dataclass(frozen=True)
class LanguageResource:
    lang: str
    title: str
    plan_title: str
    no_interrogation: str
    col_step: str
    col_columns: str
    col_values: str
    col_units: str
    step: str
    steps: str
    column_schema: str
    sql_types: str
    python_types: str
    no_preconditions: str
    preconditions_applied: str
    no_eval_issues: str
    failing_rows_available: str


def load_language(lang: str = DEFAULT_LANGUAGE, path: Path | None = None) -> LanguageResource:
    source = path or LANGUAGE_PATH
    raw = yaml.safe_load(source.read_text()) or {}
    if lang not in raw:
        raise ReportError(
            f"Unsupported reporting language '{lang}' (choose from: {', '.join(sorted(raw))})."
        )
    known = {item.name for item in fields(LanguageResource)} - {"lang"}
    entries = dict(raw.get(DEFAULT_LANGUAGE) or {})
    entries.update(raw[lang] or {})
    missing = known - set(entries)
    if missing:
        raise ReportError(f"Language '{lang}' is missing strings: {', '.join(sorted(missing))}.")
    return LanguageResource(lang=lang, **{key: str(entries[key]) for key in known})


@dataclass(frozen=True)
class StepConfig:
    assertion_type: str
    columns: list[str] | None
    values: Any
    preconditions: list[str] | None
    thresholds: dict[str, Any] | None
    active: bool
    brief: str | None
    metadata: dict[str, Any]


class StepTarget(Protocol):
    def add_step(self, assertion_type: str, **kwargs: Any) -> int: ...


def _parse_rule(rule_text: str) -> tuple[str, list[str]]:
    rule_text = rule_text.strip()
    if "(" in rule_text and rule_text.endswith(")"):
        name, arg_text = rule_text.split("(", 1)
        args = [arg.strip() for arg in arg_text[:-1].split(",")]
        return name.strip(), [arg for arg in args if arg]
    return rule_text, []


def _raw_argument(rule_text: str) -> str | None:
    rule_text = rule_text.strip()
    if "(" not in rule_text or not rule_text.endswith(")"):
        return None
    raw = rule_text.split("(", 1)[1][:-1].strip()
    return raw or None


def _coerce_arg(text: str) -> Any:
    try:
        value = yaml.safe_load(text)
    except yaml.YAMLError:
        return text
    if isinstance(value, (list, dict)):
        return text
    if value is None and text.lower() not in ("null", "~"):
        return text
    return value


def _parse_bound(raw: Any, inclusive: bool) -> Bound:
    if isinstance(raw, dict) and "column" in raw:
        return Bound(ColumnRef(str(raw["column"])), inclusive)
    return Bound(raw, inclusive)


def parse_values(raw: Any) -> StepValues | Any:
    """Turn a YAML `values` payload into a step values variant.

    Scalars and lists are returned unchanged and become literal values
    when the step is added.
    """
    if not isinstance(raw, dict):
        return raw
    if "column" in raw:
        return ColumnValue(ColumnRef(str(raw["column"])))
    if "left" in raw or "right" in raw:
        inclusive = raw.get("inclusive", [True, True])
        if isinstance(inclusive, bool):
            inclusive = [inclusive, inclusive]
        if len(inclusive) != 2:
            raise InvalidStepError("Bounds take exactly two inclusive flags.")
        return BoundsValues(
            left=_parse_bound(raw.get("left"), bool(inclusive[0])),
            right=_parse_bound(raw.get("right"), bool(inclusive[1])),
        )
    if "schema" in raw:
        schema = raw["schema"] or {}
        return SchemaValues(
            columns=tuple((str(name), str(kind or "")) for name, kind in schema.items()),
            type_system=str(raw.get("type_system", "sql")),
            complete=bool(raw.get("complete", True)),
            in_order=bool(raw.get("in_order", True)),
        )
    if "steps" in raw:
        sub_steps = []
        for entry in raw["steps"] or []:
            config = _parse_entry(entry)
            sub_steps.append(
                SubStep(
                    assertion_type=config.assertion_type,
                    columns=config.columns or (),
                    values=config.values,
                )
            )
        return SubStepValues(tuple(sub_steps))
    if "expr" in raw:
        return ExpressionValues(str(raw["expr"]))
    raise InvalidStepError(f"Unrecognized values payload: {raw!r}.")


def _parse_entry(entry: dict[str, Any]) -> StepConfig:
    if not isinstance(entry, dict) or "rule" not in entry:
        raise InvalidStepError(f"Plan entries need a 'rule', got {entry!r}.")
    assertion_type, rule_args = _parse_rule(str(entry["rule"]))
    column = entry.get("column")
    columns = entry.get("columns")
    if not columns and column:
        columns = [column]
    if isinstance(columns, str):
        columns = [columns]
    if "values" in entry:
        values = parse_values(entry["values"])
    elif assertion_type in RAW_ARGUMENT_RULES:
        raw = _raw_argument(str(entry["rule"]))
        if raw is None:
            values = None
        elif assertion_type == "col_vals_expr":
            values = ExpressionValues(raw)
        else:
            values = raw
    elif rule_args:
        coerced = [_coerce_arg(arg) for arg in rule_args]
        values = coerced[0] if len(coerced) == 1 else coerced
    else:
        values = None
    preconditions = entry.get("preconditions")
    if isinstance(preconditions, str):
        preconditions = [preconditions]
    return StepConfig(
        assertion_type=assertion_type,
        columns=[str(name) for name in columns] if columns else None,
        values=values,
        preconditions=preconditions,
        thresholds=entry.get("thresholds"),
        active=bool(entry.get("active", True)),
        brief=entry.get("brief"),
        metadata=entry,
    )


def load_plan(path: Path) -> tuple[list[StepConfig], str | None]:
    raw = yaml.safe_load(path.read_text()) or {}
    entries: Iterable[dict[str, Any]] = raw.get("steps") or []
    return [_parse_entry(entry) for entry in entries], raw.get("name")


def apply_plan(
    target: StepTarget, configs: Iterable[StepConfig], table_columns: Sequence[str] | None = None
) -> list[int]:
    options: dict[str, Any] = {} if table_columns is None else {"table_columns": table_columns}
    return [
        target.add_step(
            config.assertion_type,
            columns=config.columns,
            values=config.values,
            preconditions=config.preconditions,
            thresholds=config.thresholds,
            active=config.active,
            brief=config.brief,
            **options,
        )
        for config in configs
    ]
