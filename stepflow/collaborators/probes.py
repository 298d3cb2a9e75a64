"""Capability probes for tools, services and files."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, model_validator

from ..errors import CommandFailed
from .base import CommandRunner

logger = logging.getLogger(__name__)


class ContainsSpec(BaseModel):
    path: str
    text: str


class ProbeSpec(BaseModel):
    """Declarative description of a single capability check.

    Exactly one of ``command`` (executable on PATH), ``shell`` (command exits
    with status 0), ``exists`` (path exists) or ``contains`` (file contains
    text) must be given.
    """

    name: Optional[str] = None
    command: Optional[str] = None
    shell: Optional[str] = None
    exists: Optional[str] = None
    contains: Optional[ContainsSpec] = None

    @model_validator(mode="after")
    def _check_kind(self) -> "ProbeSpec":
        kinds = [
            kind
            for kind in ("command", "shell", "exists", "contains")
            if getattr(self, kind) is not None
        ]
        if len(kinds) != 1:
            raise ValueError(
                "probe needs exactly one of command, shell, exists, contains"
            )
        return self

    def describe(self) -> str:
        if self.name:
            return self.name
        if self.command is not None:
            return f"command {self.command}"
        if self.shell is not None:
            return f"`{self.shell}`"
        if self.exists is not None:
            return f"path {self.exists}"
        return f"{self.contains.path} contains {self.contains.text!r}"


class CapabilityProbe:
    """Evaluate ``ProbeSpec`` checks relative to a working directory."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def check(self, capability: ProbeSpec, cwd: Optional[Path] = None) -> bool:
        base = Path(cwd) if cwd else Path.cwd()
        if capability.command is not None:
            return shutil.which(capability.command) is not None
        if capability.shell is not None:
            try:
                self._runner.run(capability.shell, cwd=base, quiet=True)
            except CommandFailed as exc:
                logger.debug(f"Probe {capability.describe()} failed: {exc}")
                return False
            return True
        if capability.exists is not None:
            return (base / capability.exists).exists()

        path = base / capability.contains.path
        if not path.is_file():
            return False
        return capability.contains.text in path.read_text(encoding="utf-8", errors="replace")
