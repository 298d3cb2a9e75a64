"""Exception types raised while sequencing provisioning steps."""

from __future__ import annotations

from typing import Iterable, Sequence


class StepflowError(Exception):
    """Base class for all stepflow errors."""


class PlanError(StepflowError):
    """Raised when a plan or configuration file cannot be loaded."""


class PrerequisiteMissing(StepflowError):
    """One or more required tools or services are unavailable."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required components: {', '.join(self.missing)}")


class StepNotApplicable(StepflowError):
    """Signals that a step does not apply in the current environment."""


class StepRecoverableFailure(StepflowError):
    """A step failed but an alternative strategy may still succeed."""


class StepFatalFailure(StepflowError):
    """A step failed and the run must stop."""


class MarkerStoreIOError(StepflowError):
    """Completion markers could not be read or written."""


class AllAlternativesExhausted(StepFatalFailure):
    """Every strategy declared for a step failed."""

    def __init__(self, step_name: str, attempts: Iterable[tuple[str, str]]):
        self.step_name = step_name
        self.attempts = list(attempts)
        reasons = "; ".join(f"{name}: {reason}" for name, reason in self.attempts)
        super().__init__(f"All alternatives failed for step '{step_name}' ({reasons})")


class CommandFailed(StepflowError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: str, returncode: int, output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"Command '{command}' exited with code {returncode}")


__all__ = [
    "StepflowError",
    "PlanError",
    "PrerequisiteMissing",
    "StepNotApplicable",
    "StepRecoverableFailure",
    "StepFatalFailure",
    "MarkerStoreIOError",
    "AllAlternativesExhausted",
    "CommandFailed",
]
