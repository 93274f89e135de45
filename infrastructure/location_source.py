"""File-backed location log source."""

from __future__ import annotations

from collections.abc import Hashable
import os
from pathlib import Path

from loguru import logger

from core.services.interfaces import LocationLogSource, OpenedLog


class FileLocationSource(LocationLogSource):
    """Open location logs stored on the local filesystem.

    The request reference is a path (`str` or `Path`); relative paths are
    resolved against `base_dir` when one is given.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None

    def resolve(self, ref: Hashable | None) -> Path | None:
        """Return the path for `ref`, or None when no log was given."""
        if ref is None:
            return None
        text = os.path.expandvars(str(ref)).strip()
        if not text:
            return None
        path = Path(text).expanduser()
        if self._base_dir is not None and not path.is_absolute():
            path = self._base_dir / path
        return path

    def open(self, ref: Hashable | None) -> OpenedLog | None:
        path = self.resolve(ref)
        if path is None:
            return None
        size = os.path.getsize(path)
        logger.info("Reading location log {} ({} bytes)", path, size)
        return OpenedLog(stream=path.open("rb"), size_hint=size)
