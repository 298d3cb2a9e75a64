"""Ordered, resumable execution of provisioning steps."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, List, Optional, Sequence

from .contracts import (
    Outcome,
    ReportEntry,
    RunReport,
    RunStatus,
    Step,
    StepContext,
    StepResult,
)
from .errors import MarkerStoreIOError
from .fallback import FallbackResolver
from .markers import MarkerStore
from .prerequisites import PrerequisiteChecker, Requirement
from .runner import StepRunner

logger = logging.getLogger(__name__)

EntryCallback = Callable[[ReportEntry], None]


class Sequencer:
    """Run an ordered list of steps, skipping those already completed.

    Completion markers of finished steps survive an aborted run, so invoking
    the sequencer again resumes at the first incomplete step. Cancellation is
    honoured only between steps.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        store: MarkerStore,
        requirements: Optional[Iterable[Requirement]] = None,
        runner: Optional[StepRunner] = None,
        resolver: Optional[FallbackResolver] = None,
        checker: Optional[PrerequisiteChecker] = None,
        reset_on_success: bool = True,
    ) -> None:
        names = [step.name for step in steps]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step names: {', '.join(duplicates)}")

        self._steps: List[Step] = list(steps)
        self._store = store
        self._requirements = list(requirements or [])
        self._runner = runner or StepRunner()
        self._resolver = resolver or FallbackResolver(self._runner)
        self._checker = checker or PrerequisiteChecker()
        self._reset_on_success = reset_on_success
        self._cancel_event = threading.Event()

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next step boundary."""
        self._cancel_event.set()

    def run(
        self,
        context: Optional[StepContext] = None,
        only: Optional[Iterable[str]] = None,
        on_entry: Optional[EntryCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunReport:
        """Execute every pending step in order and return the run report.

        Args:
            context: Context handed to step actions. A fresh one rooted at the
                current directory is used when omitted.
            only: Restrict the run to these step names (list order is kept).
            on_entry: Called with each report entry as soon as it is known.
            cancel_event: Optional external cancellation signal.
        """
        context = context or StepContext()
        report = RunReport()
        self._cancel_event.clear()
        steps = self._select(only)

        missing = self._checker.check_all(self._requirements)
        if missing:
            report.status = RunStatus.PREREQUISITES_MISSING
            report.missing_requirements = missing
            logger.error(report.summary())
            return report

        for step in steps:
            if self._cancel_event.is_set() or (cancel_event and cancel_event.is_set()):
                report.status = RunStatus.CANCELLED
                report.next_step = step.name
                logger.warning(report.summary())
                return report

            entry = self._process(step, context)
            report.add(entry)
            if on_entry is not None:
                on_entry(entry)

            if entry.outcome == Outcome.FATAL_FAILURE:
                report.status = RunStatus.ABORTED
                report.failed_step = step.name
                logger.error(report.summary())
                return report

        report.status = RunStatus.COMPLETED
        if self._reset_on_success and only is None:
            self._cleanup(report)
        logger.info(report.summary())
        return report

    # ------------------------------------------------------------------
    def _select(self, only: Optional[Iterable[str]]) -> List[Step]:
        if only is None:
            return list(self._steps)
        wanted = set(only)
        unknown = wanted - {step.name for step in self._steps}
        if unknown:
            raise ValueError(f"Unknown steps: {', '.join(sorted(unknown))}")
        return [step for step in self._steps if step.name in wanted]

    def _process(self, step: Step, context: StepContext) -> ReportEntry:
        try:
            marker = self._store.get(step.name)
        except MarkerStoreIOError as exc:
            logger.error(f"Step {step.name}: cannot read marker: {exc}")
            return ReportEntry(
                step_name=step.name, outcome=Outcome.FATAL_FAILURE, message=str(exc)
            )

        if marker is not None:
            logger.info(f"Step {step.name}: already completed, skipping")
            return ReportEntry(
                step_name=step.name,
                outcome=Outcome.SKIPPED_ALREADY_DONE,
                alternative=marker.alternative,
                message="already completed",
            )

        logger.info(f"Step {step.name}: {step.title}")
        if step.has_alternatives:
            result = self._resolver.resolve(step, context)
        else:
            result = self._runner.execute(step, context.for_alternative(None))
            if result.outcome == Outcome.RECOVERABLE_FAILURE:
                result = result.model_copy(update={"outcome": Outcome.FATAL_FAILURE})

        if result.outcome == Outcome.SUCCESS:
            result = self._commit(step, result)
        return self._entry(step, result)

    def _commit(self, step: Step, result: StepResult) -> StepResult:
        try:
            self._store.mark_complete(step.name, alternative=result.alternative)
        except MarkerStoreIOError as exc:
            logger.error(f"Step {step.name}: cannot record completion: {exc}")
            return result.model_copy(
                update={
                    "outcome": Outcome.FATAL_FAILURE,
                    "message": f"completed but marker not written: {exc}",
                    "error": exc,
                }
            )
        return result

    @staticmethod
    def _entry(step: Step, result: StepResult) -> ReportEntry:
        return ReportEntry(
            step_name=step.name,
            outcome=result.outcome,
            alternative=result.alternative,
            message=result.message,
            attempts=result.attempts,
        )

    def _cleanup(self, report: RunReport) -> None:
        try:
            self._store.reset()
        except MarkerStoreIOError as exc:
            report.cleanup_error = str(exc)
            logger.error(f"Cannot clear completion markers: {exc}")
            return
        report.markers_reset = True
