"""Core domain models for location samples, media items and loaded timelines."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

E7 = 10_000_000


@dataclass(frozen=True)
class LatLng:
    """A geographic position in decimal degrees."""

    lat: float
    lng: float

    @classmethod
    def from_e7(cls, lat_e7: int, lng_e7: int) -> LatLng:
        """Build from fixed-point degrees scaled by 10^7."""
        return cls(lat_e7 / E7, lng_e7 / E7)


@dataclass(frozen=True)
class LocationSample:
    """A known position at a point in time (epoch milliseconds)."""

    timestamp_ms: int
    position: LatLng


class MediaKind(str, Enum):
    """Supported media kinds."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class MediaItem:
    """A media capture placed on the map.

    `position` is either the file's own geotag (`has_direct_geotag=True`) or a
    value interpolated from the location log.
    """

    path: str
    id: int
    timestamp_ms: int
    kind: MediaKind
    position: LatLng
    has_direct_geotag: bool


@dataclass(frozen=True)
class Timeline:
    """Merged result of one load.

    Attributes:
        samples: Read-only mapping of timestamp to sample, ascending by key.
        media_items: Geotagged items followed by interpolated items.
    """

    samples: Mapping[int, LocationSample] = field(default_factory=dict)
    media_items: tuple[MediaItem, ...] = ()

    def __post_init__(self) -> None:
        ordered = dict(sorted(self.samples.items()))
        object.__setattr__(self, "samples", MappingProxyType(ordered))
        object.__setattr__(self, "media_items", tuple(self.media_items))

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    def geotagged_items(self) -> list[MediaItem]:
        return [m for m in self.media_items if m.has_direct_geotag]

    def interpolated_items(self) -> list[MediaItem]:
        return [m for m in self.media_items if not m.has_direct_geotag]


@dataclass(frozen=True)
class LoadRequest:
    """Parameters of one load. Equal requests are duplicates of each other."""

    start_time: int
    end_time: int
    log_source_ref: Hashable | None = None
    selected_folders: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.start_time > self.end_time:
            raise ValueError(
                f"start_time ({self.start_time}) must not exceed end_time ({self.end_time})"
            )
        folders: Iterable[str] = self.selected_folders or ()
        object.__setattr__(self, "selected_folders", frozenset(folders))


@dataclass(frozen=True)
class LoadState:
    """Snapshot of a load as seen by observers."""

    progress: int = 0
    result: Timeline | None = None
    completed: bool = False
