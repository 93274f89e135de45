"""Shared fakes for the pipeline collaborators."""

from __future__ import annotations

from collections.abc import Hashable, Iterable
import io
import json
import threading

from core.models import LatLng, MediaKind
from core.services.interfaces import (
    CatalogRecord,
    GeotagReader,
    LocationLogSource,
    MediaCatalog,
    OpenedLog,
)


def location_log(*records: dict) -> bytes:
    """Encode records as a location history document."""
    return json.dumps({"locations": list(records)}).encode("utf-8")


def loc(timestamp_ms: int, lat: float, lng: float, accuracy: int = 10) -> dict:
    return {
        "timestampMs": str(timestamp_ms),
        "latitudeE7": round(lat * 10_000_000),
        "longitudeE7": round(lng * 10_000_000),
        "accuracy": accuracy,
    }


def record(
    id: int,
    *,
    taken: int | None = None,
    added: int | None = None,
    folder: str = "Camera",
    kind: MediaKind = MediaKind.IMAGE,
    path: str | None = None,
) -> CatalogRecord:
    """Build a catalog record; `taken` is in ms and `added` in seconds."""
    return CatalogRecord(
        id=id,
        folder=folder,
        date_taken=None if taken is None else str(taken),
        date_added=None if added is None else str(added),
        file_path=path or f"/media/{folder}/{id}.{'jpg' if kind == MediaKind.IMAGE else 'mp4'}",
        kind=kind,
    )


class FakeLogSource(LocationLogSource):
    def __init__(self, logs: dict[Hashable, bytes] | None = None) -> None:
        self.logs = logs or {}

    def open(self, ref: Hashable | None) -> OpenedLog | None:
        if ref is None:
            return None
        data = self.logs[ref]
        return OpenedLog(stream=io.BytesIO(data), size_hint=len(data))


class FakeCatalog(MediaCatalog):
    """In-memory catalog filtering like the CSV catalog does."""

    def __init__(self, records: Iterable[CatalogRecord] = ()) -> None:
        self.records = list(records)
        self.queries: list[tuple[int, int, list[str]]] = []

    def query(self, start_s: int, end_s: int, folders: Iterable[str]) -> list[CatalogRecord]:
        selected = list(folders)
        self.queries.append((start_s, end_s, selected))
        out = []
        for r in self.records:
            if selected and r.folder not in selected:
                continue
            if r.date_added is not None and not start_s <= int(r.date_added) <= end_s:
                continue
            out.append(r)
        return out

    def folders(self) -> list[str]:
        return [r.folder for r in self.records]


class BlockingCatalog(FakeCatalog):
    """Blocks the first query until `release` is set."""

    def __init__(self, records: Iterable[CatalogRecord] = ()) -> None:
        super().__init__(records)
        self.entered = threading.Event()
        self.release = threading.Event()
        self._first = True
        self._lock = threading.Lock()

    def query(self, start_s: int, end_s: int, folders: Iterable[str]) -> list[CatalogRecord]:
        with self._lock:
            first, self._first = self._first, False
        if first:
            self.entered.set()
            assert self.release.wait(5)
        return super().query(start_s, end_s, folders)


class FakeGeotagReader(GeotagReader):
    def __init__(self, geotags: dict[str, LatLng] | None = None) -> None:
        self.geotags = geotags or {}
        self.calls: list[str] = []

    def read_geotag(self, path: str) -> LatLng | None:
        self.calls.append(path)
        return self.geotags.get(path)
