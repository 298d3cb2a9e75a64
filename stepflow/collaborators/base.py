"""Narrow interfaces to the external systems steps act upon."""

from __future__ import annotations

import abc
from pathlib import Path
from typing import Mapping, Optional


class CommandRunner(metaclass=abc.ABCMeta):
    """Run an external command, raising ``CommandFailed`` on non-zero exit."""

    @abc.abstractmethod
    def run(self, command: str, cwd: Optional[Path] = None, quiet: bool = False) -> str:
        """Run ``command`` in ``cwd`` and return its captured output, if any."""
        raise NotImplementedError


class Installer(metaclass=abc.ABCMeta):
    """Install a framework or package."""

    @abc.abstractmethod
    def install(self, target: str, cwd: Optional[Path] = None) -> None:
        raise NotImplementedError


class TemplateWriter(metaclass=abc.ABCMeta):
    """Emit generated files with their full desired content."""

    @abc.abstractmethod
    def write_file(self, path: Path, content: str) -> bool:
        """Write ``content`` to ``path``; return ``False`` if nothing changed."""
        raise NotImplementedError


class Migration(metaclass=abc.ABCMeta):
    """Apply pending database migrations."""

    @abc.abstractmethod
    def apply(self, cwd: Optional[Path] = None) -> None:
        raise NotImplementedError


class EnvFile(metaclass=abc.ABCMeta):
    """Set or remove keys in a dotenv style settings file."""

    @abc.abstractmethod
    def apply(self, path: Path, values: Mapping[str, Optional[str]]) -> None:
        raise NotImplementedError
