"""Core contracts shared by the stepflow sequencing components."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

PRIMARY_STRATEGY = "primary"


class Outcome(str, Enum):
    """Classified result of attempting a step once."""

    SUCCESS = "success"
    SKIPPED_ALREADY_DONE = "skipped_already_done"
    SKIPPED_NOT_APPLICABLE = "skipped_not_applicable"
    RECOVERABLE_FAILURE = "recoverable_failure"
    FATAL_FAILURE = "fatal_failure"

    @property
    def is_failure(self) -> bool:
        return self in (Outcome.RECOVERABLE_FAILURE, Outcome.FATAL_FAILURE)


class RunStatus(str, Enum):
    """Whole-run outcome of one sequencer invocation."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    PREREQUISITES_MISSING = "prerequisites_missing"
    CANCELLED = "cancelled"


class StepContext(BaseModel):
    """State handed to every step action during a run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    workdir: Path = Field(default_factory=Path.cwd)
    variables: dict[str, Any] = Field(default_factory=dict)
    alternative: Optional[str] = None

    def for_alternative(self, name: Optional[str]) -> "StepContext":
        """Return a view of this context bound to strategy ``name``.

        The ``variables`` mapping is shared with the original context.
        """
        return self.model_copy(update={"alternative": name})


Action = Callable[[StepContext], Any]
ProbeFn = Callable[[], bool]


class Alternative(BaseModel):
    """A named strategy for a step, tried in declared order."""

    name: str
    action: Action
    probe: Optional[ProbeFn] = None
    critical: bool = True


class Step(BaseModel):
    """One named unit of provisioning work."""

    name: str
    action: Optional[Action] = None
    alternatives: List[Alternative] = Field(default_factory=list)
    critical: bool = True
    description: str = ""

    @model_validator(mode="after")
    def _check_strategies(self) -> "Step":
        if self.action is None and not self.alternatives:
            raise ValueError(f"Step '{self.name}' needs an action or alternatives")
        names = [alt.name for alt in self.strategies()]
        if len(names) != len(set(names)):
            raise ValueError(f"Step '{self.name}' has duplicate alternative names")
        return self

    @property
    def has_alternatives(self) -> bool:
        return bool(self.alternatives)

    @property
    def title(self) -> str:
        return self.description or self.name

    def strategies(self) -> list[Alternative]:
        """Return every strategy in the order it should be attempted.

        A step declaring both an ``action`` and ``alternatives`` tries its
        action first under the name ``primary``.
        """
        strategies: list[Alternative] = []
        if self.action is not None:
            strategies.append(
                Alternative(
                    name=PRIMARY_STRATEGY, action=self.action, critical=self.critical
                )
            )
        strategies.extend(self.alternatives)
        return strategies


class AlternativeAttempt(BaseModel):
    """A strategy that was tried and did not succeed."""

    name: str
    outcome: Outcome
    reason: str = ""


class StepResult(BaseModel):
    """Outcome of executing a step (or one of its strategies)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: Outcome
    message: str = ""
    error: Optional[BaseException] = None
    alternative: Optional[str] = None
    attempts: List[AlternativeAttempt] = Field(default_factory=list)

    @classmethod
    def success(cls, message: str = "") -> "StepResult":
        return cls(outcome=Outcome.SUCCESS, message=message)

    @classmethod
    def not_applicable(cls, message: str = "") -> "StepResult":
        return cls(outcome=Outcome.SKIPPED_NOT_APPLICABLE, message=message)

    @classmethod
    def fatal(
        cls, message: str = "", error: Optional[BaseException] = None
    ) -> "StepResult":
        return cls(outcome=Outcome.FATAL_FAILURE, message=message, error=error)


class ReportEntry(BaseModel):
    """One line of the run report."""

    step_name: str
    outcome: Outcome
    alternative: Optional[str] = None
    message: str = ""
    attempts: List[AlternativeAttempt] = Field(default_factory=list)

    def render(self) -> str:
        line = f"{self.step_name}"
        if self.alternative:
            line += f" [{self.alternative}]"
        line += f": {self.outcome.value}"
        if self.message:
            line += f" - {self.message}"
        return line


class RunReport(BaseModel):
    """Ordered record of what happened during one sequencer invocation."""

    entries: List[ReportEntry] = Field(default_factory=list)
    status: RunStatus = RunStatus.COMPLETED
    failed_step: Optional[str] = None
    next_step: Optional[str] = None
    missing_requirements: List[str] = Field(default_factory=list)
    markers_reset: bool = False
    cleanup_error: Optional[str] = None

    def add(self, entry: ReportEntry) -> None:
        self.entries.append(entry)

    def entry_for(self, step_name: str) -> Optional[ReportEntry]:
        for entry in self.entries:
            if entry.step_name == step_name:
                return entry
        return None

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def exit_code(self) -> int:
        return 0 if self.completed else 1

    def outcomes(self) -> dict[str, Outcome]:
        return {entry.step_name: entry.outcome for entry in self.entries}

    def summary(self) -> str:
        """Describe the whole-run outcome in one sentence."""
        if self.status == RunStatus.COMPLETED:
            return "All steps completed successfully."
        if self.status == RunStatus.PREREQUISITES_MISSING:
            return "Missing required components: " + ", ".join(
                self.missing_requirements
            )
        if self.status == RunStatus.CANCELLED:
            return (
                f"Run cancelled before step '{self.next_step}'. "
                "Re-run the same command to continue where it left off."
            )
        return (
            f"Step '{self.failed_step}' failed. "
            "Re-run the same command to continue where it left off."
        )


__all__ = [
    "PRIMARY_STRATEGY",
    "Outcome",
    "RunStatus",
    "StepContext",
    "Alternative",
    "Step",
    "AlternativeAttempt",
    "StepResult",
    "ReportEntry",
    "RunReport",
]
