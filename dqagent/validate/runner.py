"""Interrogation executor that evaluates the active steps of a plan against a table."""

from __future__ import annotations

import logging
import threading
import time
import warnings
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeout
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

import duckdb
import pandas as pd

from dqagent.errors import EvaluationError, EvaluationWarning
from dqagent.validate.config import AgentSettings
from dqagent.validate.models import (
    CaptureStack,
    InterrogationSummary,
    PredicateOutcome,
    Preconditions,
    StepRecord,
    StepResult,
    StepState,
)
from dqagent.validate.plan import ValidationPlan
from dqagent.validate.query_utils import TABLE_ALIAS, register_table
from dqagent.validate.rule_executor import RuleEvaluator
from dqagent.validate.severity import evaluate

logger = logging.getLogger(__name__)

_IGNORED_WARNINGS = (DeprecationWarning, PendingDeprecationWarning)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WarningRouter:
    """Files warnings raised while a step runs under the step's thread.

    The filters and ``showwarning`` hook are installed once by the thread
    driving the interrogation; workers only register their own message list.
    Warnings from unregistered threads go to the previous ``showwarning``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: dict[int, list[str]] = {}
        self._fallback: Callable[..., Any] | None = None

    @property
    def installed(self) -> bool:
        return self._fallback is not None

    @contextmanager
    def install(self) -> Iterator[WarningRouter]:
        if self.installed:
            yield self
            return
        with warnings.catch_warnings():
            warnings.simplefilter("always")
            for category in _IGNORED_WARNINGS:
                warnings.simplefilter("ignore", category)
            self._fallback = warnings.showwarning
            warnings.showwarning = self._show
            try:
                yield self
            finally:
                self._fallback = None

    @contextmanager
    def capture(self, messages: list[str]) -> Iterator[list[str]]:
        ident = threading.get_ident()
        with self._lock:
            self._active[ident] = messages
        try:
            yield messages
        finally:
            with self._lock:
                self._active.pop(ident, None)

    def _show(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: Any = None,
        line: str | None = None,
    ) -> None:
        with self._lock:
            messages = self._active.get(threading.get_ident())
            fallback = self._fallback
        if messages is not None:
            messages.append(str(message))
        elif fallback is not None:
            fallback(message, category, filename, lineno, file, line)


class Interrogator:
    def __init__(self, settings: AgentSettings | None = None) -> None:
        self.settings = settings or AgentSettings()
        self.evaluator = RuleEvaluator(
            extract_failed=self.settings.extract_failed,
            extract_limit=self.settings.extract_limit,
        )
        self.warnings = WarningRouter()

    def interrogate(
        self,
        plan: ValidationPlan,
        table: pd.DataFrame,
        agent_name: str = "agent",
        cancel: threading.Event | None = None,
    ) -> tuple[InterrogationSummary, dict[int, pd.DataFrame]]:
        """Evaluate every active step, filling in the step records in place.

        Steps that were not reached because `cancel` was set keep the
        planned state. Returns the run summary and the failing-row extracts
        keyed by step index.
        """
        started_at = _utcnow()
        extracts: dict[int, pd.DataFrame] = {}
        active: list[StepRecord] = []
        for step in plan:
            step.reset()
            if step.active:
                active.append(step)
            else:
                step.state = StepState.SKIPPED

        with self.warnings.install():
            if self.settings.max_workers > 1 and len(active) > 1:
                cancelled = self._run_parallel(active, table, extracts, cancel)
            else:
                cancelled = self._run_sequential(active, table, extracts, cancel)

        steps = plan.steps
        summary = InterrogationSummary(
            agent_name=agent_name,
            started_at=started_at,
            finished_at=_utcnow(),
            steps_total=len(steps),
            evaluated=sum(1 for step in steps if step.state is StepState.EVALUATED),
            skipped=sum(1 for step in steps if step.state is StepState.SKIPPED),
            errored=sum(1 for step in steps if step.eval_error),
            warned=sum(1 for step in steps if step.eval_warning),
            cancelled=cancelled,
        )
        logger.info(
            "Interrogation of %s finished: %s evaluated, %s skipped, %s errored%s",
            agent_name,
            summary.evaluated,
            summary.skipped,
            summary.errored,
            " (cancelled)" if cancelled else "",
        )
        return summary, extracts

    def evaluate_step(self, step: StepRecord, table: pd.DataFrame) -> StepResult:
        """Evaluate a single step without touching its record; never raises."""
        with self.warnings.install():
            return self._evaluate_step(step, table)

    def _evaluate_step(self, step: StepRecord, table: pd.DataFrame) -> StepResult:
        time_processed = _utcnow()
        clock = time.perf_counter()
        outcome: PredicateOutcome | None = None
        error: str | None = None
        messages: list[str] = []
        timeout = self.settings.step_timeout
        try:
            if timeout is None:
                outcome = self._evaluate(step, table, messages)
            else:
                outcome = _call_with_timeout(self._evaluate, timeout, step, table, messages)
        except EvaluationWarning as exc:
            messages.append(str(exc))
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
        seen = list(messages)
        if outcome is not None:
            seen.extend(outcome.warnings)
        return StepResult(
            index=step.index,
            outcome=outcome,
            error=error,
            warnings=seen,
            time_processed=time_processed,
            proc_duration_s=round(time.perf_counter() - clock, 4),
        )

    def _run_sequential(
        self,
        steps: list[StepRecord],
        table: pd.DataFrame,
        extracts: dict[int, pd.DataFrame],
        cancel: threading.Event | None,
    ) -> bool:
        for step in steps:
            if cancel is not None and cancel.is_set():
                logger.info("Interrogation cancelled before step %s", step.index)
                return True
            self._apply(step, self._evaluate_step(step, table), extracts)
        return False

    def _run_parallel(
        self,
        steps: list[StepRecord],
        table: pd.DataFrame,
        extracts: dict[int, pd.DataFrame],
        cancel: threading.Event | None,
    ) -> bool:
        if cancel is not None and cancel.is_set():
            return True
        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="dqagent-step"
        ) as executor:
            futures: dict[Future[StepResult], StepRecord] = {
                executor.submit(self._evaluate_step, step, table): step
                for step in steps
            }
            for future in as_completed(futures):
                self._apply(futures[future], future.result(), extracts)
                if cancel is not None and cancel.is_set():
                    logger.info("Interrogation cancelled; pending steps were not run")
                    executor.shutdown(wait=False, cancel_futures=True)
                    return True
        return False

    def _evaluate(
        self, step: StepRecord, table: pd.DataFrame, messages: list[str]
    ) -> PredicateOutcome:
        with self.warnings.capture(messages):
            return self._run_predicate(step, table)

    def _run_predicate(self, step: StepRecord, table: pd.DataFrame) -> PredicateOutcome:
        with duckdb.connect() as con:
            effective = apply_preconditions(con, table, step.preconditions)
            register_table(con, effective)
            return self.evaluator.evaluate(con, effective, step)

    @staticmethod
    def _apply(step: StepRecord, result: StepResult, extracts: dict[int, pd.DataFrame]) -> None:
        step.state = StepState.EVALUATED
        step.time_processed = result.time_processed
        step.proc_duration_s = result.proc_duration_s
        step.eval_error = result.error is not None
        step.eval_warning = bool(result.warnings)
        step.capture_stack = CaptureStack(
            error=result.error,
            warning="\n".join(result.warnings) if result.warnings else None,
        )
        if result.error is not None:
            logger.warning(
                "Step %s (%s) could not be evaluated: %s",
                step.index,
                step.assertion_type,
                result.error,
            )
            return
        outcome = result.outcome
        if outcome is None:
            return
        step.n = outcome.n
        step.n_passed = outcome.n_passed
        step.f_passed = outcome.n_passed / outcome.n if outcome.n else None
        severity = evaluate(outcome.n, outcome.n_passed, step.thresholds)
        step.warn = severity.warn
        step.stop = severity.stop
        step.notify = severity.notify
        if outcome.failing_rows is not None and not outcome.failing_rows.empty:
            extracts[step.index] = outcome.failing_rows
        logger.debug(
            "Step %s (%s): %s/%s units passed",
            step.index,
            step.assertion_type,
            outcome.n_passed,
            outcome.n,
        )


def apply_preconditions(
    con: duckdb.DuckDBPyConnection, table: pd.DataFrame, preconditions: Preconditions | None
) -> pd.DataFrame:
    if preconditions is None:
        return table
    current = table.copy()
    for statement in preconditions.statements:
        if isinstance(statement, str):
            register_table(con, current)
            current = con.execute(statement).df()
            con.unregister(TABLE_ALIAS)
        else:
            current = statement(current)
        if not isinstance(current, pd.DataFrame):
            raise EvaluationError(
                f"Precondition {preconditions.describe()!r} did not return a table."
            )
    return current


def _call_with_timeout(fn: Callable[..., Any], timeout: float, *args: Any) -> Any:
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dqagent-timeout")
    try:
        future = pool.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            if future.done():
                raise
            raise EvaluationError(f"Step evaluation exceeded the {timeout:g}s timeout.") from None
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
