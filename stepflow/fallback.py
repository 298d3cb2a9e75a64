"""Selection between a step's ordered strategies."""

from __future__ import annotations

import logging
from typing import Optional

from .contracts import Alternative, AlternativeAttempt, Outcome, Step, StepContext, StepResult
from .errors import AllAlternativesExhausted
from .runner import StepRunner

logger = logging.getLogger(__name__)


class FallbackResolver:
    """Try a step's strategies in declared order and keep the first success.

    A strategy is only executed when its probe passes. When every strategy
    fails the result is a ``FatalFailure`` carrying each attempt and its
    reason; no unvalidated default is ever picked.
    """

    def __init__(self, runner: Optional[StepRunner] = None) -> None:
        self._runner = runner or StepRunner()

    def resolve(self, step: Step, context: StepContext) -> StepResult:
        attempts: list[AlternativeAttempt] = []
        for alternative in step.strategies():
            reason = self._probe_failure(alternative)
            if reason is not None:
                logger.info(f"Step {step.name}: skipping alternative {alternative.name} ({reason})")
                attempts.append(
                    AlternativeAttempt(
                        name=alternative.name,
                        outcome=Outcome.RECOVERABLE_FAILURE,
                        reason=reason,
                    )
                )
                continue

            result = self._runner.execute(
                alternative, context.for_alternative(alternative.name)
            )
            if result.outcome == Outcome.SUCCESS:
                logger.info(f"Step {step.name}: using alternative {alternative.name}")
                return result.model_copy(
                    update={"alternative": alternative.name, "attempts": attempts}
                )

            attempts.append(
                AlternativeAttempt(
                    name=alternative.name,
                    outcome=result.outcome,
                    reason=result.message or result.outcome.value,
                )
            )
            logger.warning(
                f"Step {step.name}: alternative {alternative.name} failed, trying next"
            )

        error = AllAlternativesExhausted(
            step.name, [(attempt.name, attempt.reason) for attempt in attempts]
        )
        logger.error(str(error))
        return StepResult(
            outcome=Outcome.FATAL_FAILURE,
            message=str(error),
            error=error,
            attempts=attempts,
        )

    @staticmethod
    def _probe_failure(alternative: Alternative) -> Optional[str]:
        if alternative.probe is None:
            return None
        try:
            if alternative.probe():
                return None
        except Exception as exc:
            return f"probe raised: {exc}"
        return "probe failed"
