"""Tunable pipeline parameters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from core.errors import SettingsError
from core.services.location_reader import DEFAULT_ACCURACY_THRESHOLD, DEFAULT_PROGRESS_INTERVAL
from core.services.media_indexer import DEFAULT_MAX_MEDIA_ITEMS


class _SettingsReader(Protocol):
    def get(self, key: str, default: Any | None = None) -> Any: ...


def _positive(settings: _SettingsReader, key: str, default: float, cast: type) -> Any:
    raw = settings.get(key, default)
    try:
        value = cast(raw)
    except (TypeError, ValueError) as ex:
        raise SettingsError(f"{key} must be a number, got {raw!r}") from ex
    if value <= 0:
        raise SettingsError(f"{key} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class PipelineSettings:
    """Limits applied by each pipeline run.

    Attributes:
        accuracy_threshold: Largest accepted location accuracy, in the log's unit.
        max_media_items: Upper bound on media items per load.
        progress_interval: Location records between progress updates.
    """

    accuracy_threshold: float = DEFAULT_ACCURACY_THRESHOLD
    max_media_items: int = DEFAULT_MAX_MEDIA_ITEMS
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL

    @classmethod
    def from_settings(cls, settings: _SettingsReader) -> PipelineSettings:
        """Read `pipeline.*` keys, falling back to the defaults."""
        return cls(
            accuracy_threshold=_positive(
                settings, "pipeline.accuracy_threshold", DEFAULT_ACCURACY_THRESHOLD, float
            ),
            max_media_items=_positive(
                settings, "pipeline.max_media_items", DEFAULT_MAX_MEDIA_ITEMS, int
            ),
            progress_interval=_positive(
                settings, "pipeline.progress_interval", DEFAULT_PROGRESS_INTERVAL, int
            ),
        )
