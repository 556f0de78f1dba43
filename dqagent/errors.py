"""Exception types raised while building, interrogating and reporting on plans."""

from __future__ import annotations


class DQAgentError(Exception):
    """Base class for all dqagent errors."""


class InvalidStepError(DQAgentError, ValueError):
    """A validation step could not be added to the plan."""


class EvaluationError(DQAgentError):
    """A step's predicate could not be computed against the table."""


class EvaluationWarning(UserWarning):
    """A step's predicate was computed but something recoverable went wrong."""


class ReportError(DQAgentError, ValueError):
    """A report could not be produced for the given options."""


class PlanNotFoundError(ReportError):
    """The agent does not hold a validation plan."""


class ExtractNotFoundError(DQAgentError, KeyError):
    """No failing-row extract is available for the requested step."""
