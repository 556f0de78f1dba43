"""Declarative data validation agents backed by DuckDB."""

from __future__ import annotations

from .errors import (
    DQAgentError,
    EvaluationError,
    EvaluationWarning,
    ExtractNotFoundError,
    InvalidStepError,
    PlanNotFoundError,
    ReportError,
)
from .report.builder import AgentReport, ReportRow
from .report.render import render_report
from .validate.agent import Agent, create_agent
from .validate.config import AgentSettings, load_settings
from .validate.models import Bound, ColumnRef, SubStep, Thresholds

__all__ = [
    "Agent",
    "AgentReport",
    "AgentSettings",
    "Bound",
    "ColumnRef",
    "DQAgentError",
    "EvaluationError",
    "EvaluationWarning",
    "ExtractNotFoundError",
    "InvalidStepError",
    "PlanNotFoundError",
    "ReportError",
    "ReportRow",
    "SubStep",
    "Thresholds",
    "create_agent",
    "load_settings",
    "render_report",
]
