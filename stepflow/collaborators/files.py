"""Filesystem backed collaborators."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values, set_key, unset_key

from .base import EnvFile, TemplateWriter

logger = logging.getLogger(__name__)


class FileTemplateWriter(TemplateWriter):
    """Write whole files, leaving them untouched when content already matches."""

    def write_file(self, path: Path, content: str) -> bool:
        path = Path(path)
        data = content.encode("utf-8")
        if path.is_file() and path.read_bytes() == data:
            logger.debug(f"{path} already up to date")
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)
        logger.info(f"Wrote {path}")
        return True


class DotenvFile(EnvFile):
    """Edit ``KEY=value`` settings files with python-dotenv.

    A missing file is created from ``<name>.example`` next to it when present.
    A value of ``None`` removes the key.
    """

    def apply(self, path: Path, values: Mapping[str, Optional[str]]) -> None:
        path = Path(path)
        if not path.exists():
            example = path.with_name(path.name + ".example")
            path.parent.mkdir(parents=True, exist_ok=True)
            if example.is_file():
                shutil.copyfile(example, path)
            else:
                path.touch()

        current = dotenv_values(path)
        for key, value in values.items():
            if value is None:
                if key in current:
                    unset_key(path, key, quote_mode="never")
                continue
            set_key(path, key, str(value), quote_mode="never")
