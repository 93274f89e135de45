"""Core service interfaces and shared data structures.

This module defines the collaborators the loading pipeline depends on (the
location log source, the media catalog and the geotag reader) together with
the simple dataclasses exchanged with them.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import BinaryIO

from core.models import LatLng, LocationSample, MediaItem, MediaKind

ProgressSink = Callable[[int], None]
CancelCheck = Callable[[], bool]


@dataclass(frozen=True)
class CatalogRecord:
    """One row returned by a media catalog query.

    Attributes:
        id: Catalog identifier of the item.
        folder: Display name of the folder the item lives in.
        date_taken: Capture time in epoch milliseconds, as text, if known.
        date_added: Time the item was added in epoch seconds, as text, if known.
        file_path: Location of the media file.
        kind: Image or video.
    """

    id: int
    folder: str
    date_taken: str | None
    date_added: str | None
    file_path: str
    kind: MediaKind


@dataclass
class MediaIndexResult:
    """Outcome of indexing the media catalog.

    Attributes:
        geotagged: Items carrying their own geotag.
        ungeotagged: Items that still need a position.
        contributed_samples: Location samples taken from geotagged items, keyed
            by timestamp.
    """

    geotagged: list[MediaItem] = field(default_factory=list)
    ungeotagged: list[MediaItem] = field(default_factory=list)
    contributed_samples: dict[int, LocationSample] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.geotagged) + len(self.ungeotagged)


@dataclass(frozen=True)
class OpenedLog:
    """An opened location log: a binary stream and its approximate size."""

    stream: BinaryIO
    size_hint: int


class LocationLogSource:
    """Interface for resolving a request's log reference to a readable stream."""

    def open(self, ref: Hashable | None) -> OpenedLog | None:
        """Open `ref`; return None when there is no log to read."""
        raise NotImplementedError


class MediaCatalog:
    """Interface for querying an index of media files."""

    def query(self, start_s: int, end_s: int, folders: Iterable[str]) -> Iterable[CatalogRecord]:
        """Return records added within `[start_s, end_s]`, newest first.

        An empty `folders` applies no folder filter.
        """
        raise NotImplementedError

    def folders(self) -> list[str]:
        """Return the folder names present in the catalog."""
        raise NotImplementedError


class GeotagReader:
    """Interface for reading a position embedded in a media file."""

    def read_geotag(self, path: str) -> LatLng | None:
        """Return the embedded position of `path`, or None when absent."""
        raise NotImplementedError
