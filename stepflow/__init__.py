"""Stepflow: resumable, idempotent provisioning step sequencing."""

from .contracts import (
    Alternative,
    Outcome,
    ReportEntry,
    RunReport,
    RunStatus,
    Step,
    StepContext,
    StepResult,
)
from .fallback import FallbackResolver
from .markers import get_marker_store
from .plan import Plan, PlanCompiler, load_plan
from .prerequisites import PrerequisiteChecker, Requirement
from .runner import StepRunner
from .sequencer import Sequencer

__version__ = "0.1.0"
__all__ = [
    "Alternative",
    "Outcome",
    "ReportEntry",
    "RunReport",
    "RunStatus",
    "Step",
    "StepContext",
    "StepResult",
    "FallbackResolver",
    "get_marker_store",
    "Plan",
    "PlanCompiler",
    "load_plan",
    "PrerequisiteChecker",
    "Requirement",
    "StepRunner",
    "Sequencer",
]
