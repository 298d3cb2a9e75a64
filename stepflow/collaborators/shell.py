"""Subprocess backed collaborators."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional

from ..errors import CommandFailed
from .base import CommandRunner, Installer, Migration

logger = logging.getLogger(__name__)


class SubprocessCommandRunner(CommandRunner):
    """Run commands through the system shell and block until they exit.

    Output streams to the terminal unless ``quiet`` is set, in which case it
    is captured and returned (or attached to ``CommandFailed``).
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout

    def run(self, command: str, cwd: Optional[Path] = None, quiet: bool = False) -> str:
        logger.info(f"Running {command}" + (f" (in {cwd})" if cwd else ""))
        try:
            cp = subprocess.run(
                command,
                shell=True,
                cwd=str(cwd) if cwd else None,
                text=True,
                capture_output=quiet,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandFailed(command, 124, f"timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise CommandFailed(command, 127, str(exc)) from exc

        output = ((cp.stdout or "") + (cp.stderr or "")) if quiet else ""
        if cp.returncode != 0:
            raise CommandFailed(command, cp.returncode, output)
        return output


class ShellInstaller(Installer):
    """Install packages by formatting ``template`` with the target name."""

    def __init__(self, runner: CommandRunner, template: str = "composer require {target}") -> None:
        self._runner = runner
        self.template = template

    def install(self, target: str, cwd: Optional[Path] = None) -> None:
        self._runner.run(self.template.format(target=target), cwd=cwd)


class ShellMigration(Migration):
    """Apply migrations by running a single configured command."""

    def __init__(self, runner: CommandRunner, command: str = "php artisan migrate --force") -> None:
        self._runner = runner
        self.command = command

    def apply(self, cwd: Optional[Path] = None) -> None:
        self._runner.run(self.command, cwd=cwd)
