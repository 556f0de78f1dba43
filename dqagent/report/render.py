"""HTML rendering of agent reports."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import pandas as pd
from jinja2 import Environment, FileSystemLoader, select_autoescape

from dqagent.report.builder import AgentReport, ReportRow
from dqagent.report.export import extract_data_uri, extract_filename
from dqagent.validate.constants import EVAL_BOTH, EVAL_ERROR, EVAL_OK, EVAL_WARNING

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

FLAG_COLORS = {"W": "#FFBF00", "S": "#CF142B", "N": "#439CFE"}
EVAL_SYMBOLS = {
    EVAL_OK: "\u2714",
    EVAL_WARNING: "\u26a0",
    EVAL_ERROR: "\U0001f4a5",
    EVAL_BOTH: "\U0001f4a5",
}
INACTIVE_BACKGROUND = "#F2F2F2"
ERROR_BACKGROUND = "#FFC1C1"


def format_fraction(value: float | None) -> str:
    if value is None:
        return "\u2014"
    if 0 < value < 0.01:
        value = 0.01
    elif 0.99 < value < 1:
        value = 0.99
    return f"{value:.2f}"


def format_count(value: int | None) -> str:
    if value is None:
        return "\u2014"
    return f"{value:,}"


def flag_symbol(value: bool | None) -> str:
    if value is None:
        return "\u2014"
    return "\u25cf" if value else "\u25cb"


def row_background(row: ReportRow) -> str | None:
    if not row.active:
        return INACTIVE_BACKGROUND
    if row.eval in (EVAL_ERROR, EVAL_BOTH):
        return ERROR_BACKGROUND
    return None


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "jinja"]),
    )
    env.filters["fraction"] = format_fraction
    env.filters["count"] = format_count
    env.filters["flag"] = flag_symbol
    env.filters["background"] = row_background
    return env


def render_report(
    report: AgentReport,
    size: str = "standard",
    extracts: Mapping[int, pd.DataFrame] | None = None,
) -> str:
    """Render a report as an HTML table.

    When `extracts` is given, rows with failing-row extracts get a download
    link carrying the CSV as a data URI.
    """
    fields = report.fields(size)
    downloads: dict[int, dict[str, Any]] = {}
    if extracts and "extract" in fields and report.agent_name:
        for row in report.rows:
            extract = extracts.get(row.i)
            if row.extract and extract is not None:
                downloads[row.i] = {
                    "href": extract_data_uri(extract, report.agent_name, row.i),
                    "filename": extract_filename(report.agent_name, row.i),
                }
    template = _environment().get_template("agent_report.html.jinja")
    return template.render(
        report=report,
        language=report.language,
        fields=fields,
        size=size,
        downloads=downloads,
        eval_symbols=EVAL_SYMBOLS,
        flag_colors=FLAG_COLORS,
    )


def write_report(
    report: AgentReport,
    path: Path,
    size: str = "standard",
    extracts: Mapping[int, pd.DataFrame] | None = None,
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_report(report, size=size, extracts=extracts), encoding="utf-8")
    return path
