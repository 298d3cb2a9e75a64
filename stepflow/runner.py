"""Execution and outcome classification of a single step action."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Union

from .contracts import Alternative, Outcome, Step, StepContext, StepResult
from .errors import (
    MarkerStoreIOError,
    StepFatalFailure,
    StepNotApplicable,
    StepRecoverableFailure,
)

logger = logging.getLogger(__name__)

Runnable = Union[Step, Alternative]
Classifier = Callable[[Runnable, Any, Optional[BaseException]], StepResult]


def _failure(runnable: Runnable) -> Outcome:
    return Outcome.FATAL_FAILURE if runnable.critical else Outcome.RECOVERABLE_FAILURE


def default_classifier(
    runnable: Runnable, value: Any, error: Optional[BaseException]
) -> StepResult:
    """Map an action's return value or raised error to a ``StepResult``.

    Critical steps turn plain failures into ``FatalFailure``; best-effort
    steps turn them into ``RecoverableFailure``.
    """

    if error is None:
        if isinstance(value, StepResult):
            return value
        if isinstance(value, Outcome):
            return StepResult(outcome=value)
        if value is False:
            return StepResult(outcome=_failure(runnable), message="action reported failure")
        return StepResult.success()

    if isinstance(error, StepNotApplicable):
        outcome = Outcome.SKIPPED_NOT_APPLICABLE
    elif isinstance(error, StepRecoverableFailure):
        outcome = Outcome.RECOVERABLE_FAILURE
    elif isinstance(error, (StepFatalFailure, MarkerStoreIOError)):
        outcome = Outcome.FATAL_FAILURE
    else:
        outcome = _failure(runnable)
    return StepResult(outcome=outcome, message=str(error), error=error)


class StepRunner:
    """Run one action and classify what happened.

    The runner never retries; retry policy is expressed as step alternatives.
    """

    def __init__(self, classify: Optional[Classifier] = None) -> None:
        self._classify = classify or default_classifier

    def execute(self, runnable: Runnable, context: StepContext) -> StepResult:
        """Execute ``runnable.action`` with ``context`` and classify the result."""
        action = runnable.action
        if action is None:
            return StepResult.fatal(f"{runnable.name} has no action to execute")

        logger.info(f"Running {runnable.name}")
        try:
            value = action(context)
        except Exception as exc:
            result = self._classify(runnable, None, exc)
        else:
            result = self._classify(runnable, value, None)

        if result.outcome.is_failure:
            logger.warning(f"{runnable.name} finished with {result.outcome.value}: {result.message}")
        else:
            logger.info(f"{runnable.name} finished with {result.outcome.value}")
        return result
