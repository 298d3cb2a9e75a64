"""Environment checks run once before any step executes."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from pydantic import BaseModel

from .errors import PrerequisiteMissing

logger = logging.getLogger(__name__)


class Requirement(BaseModel):
    """A named capability the run depends on, verified by ``probe``."""

    name: str
    probe: Callable[[], bool]
    hint: Optional[str] = None

    def describe(self) -> str:
        return f"{self.name} ({self.hint})" if self.hint else self.name


class PrerequisiteChecker:
    """Evaluate caller-supplied capability probes.

    The checker holds no domain knowledge; every probe is evaluated even after
    one fails so the operator can fix all missing components in one pass.
    """

    def check_all(self, requirements: Iterable[Requirement]) -> list[str]:
        """Return the names of every requirement whose probe fails."""
        missing: list[str] = []
        for requirement in requirements:
            if not self._probe(requirement):
                logger.warning(f"Prerequisite missing: {requirement.describe()}")
                missing.append(requirement.name)
        return missing

    def require(self, requirements: Iterable[Requirement]) -> None:
        """Raise ``PrerequisiteMissing`` listing all failing requirements."""
        missing = self.check_all(requirements)
        if missing:
            raise PrerequisiteMissing(missing)

    @staticmethod
    def _probe(requirement: Requirement) -> bool:
        try:
            return bool(requirement.probe())
        except Exception as exc:
            logger.debug(f"Probe for {requirement.name} raised: {exc}")
            return False
