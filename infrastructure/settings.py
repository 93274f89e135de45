"""JSON configuration with dotted-key access.

Values from the file are layered over `DEFAULT_SETTINGS`, so a settings file
only needs the keys it changes.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from core.errors import SettingsError

DEFAULT_SETTINGS: dict[str, Any] = {
    "pipeline": {
        "accuracy_threshold": 100,
        "max_media_items": 1000,
        "progress_interval": 1000,
    },
    "catalog": {"csv_path": "catalog.csv"},
    "logging": {"dir": None, "level": "INFO"},
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class JsonSettings:
    """Settings loaded from a JSON object file, falling back to the defaults."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as ex:
            raise SettingsError(f"{self._path} is not valid JSON: {ex}") from ex
        if not isinstance(data, dict):
            raise SettingsError(f"{self._path} must contain a JSON object")
        self._data = _merge(DEFAULT_SETTINGS, data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JsonSettings:
        """Build settings from an in-memory mapping (no file involved)."""
        instance = cls.__new__(cls)
        instance._path = Path()
        instance._data = _merge(DEFAULT_SETTINGS, data)
        return instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def section(self, name: str) -> dict[str, Any]:
        """Return a copy of the top-level section `name` (empty if absent)."""
        value = self._data.get(name)
        return copy.deepcopy(value) if isinstance(value, dict) else {}
