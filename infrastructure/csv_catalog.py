"""CSV-backed media catalog.

Each row describes one media file::

    Id,Folder,DateTaken,DateAdded,FilePath,MediaType
    17,Camera,1609459200000,1609459205,/photos/IMG_0017.jpg,image

`DateTaken` is epoch milliseconds and `DateAdded` epoch seconds; either may be
empty. Rows that cannot be parsed are logged and skipped.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import csv
from pathlib import Path

from loguru import logger

from core.models import MediaKind
from core.services.interfaces import CatalogRecord, MediaCatalog

CSV_HEADERS = [
    "Id",
    "Folder",
    "DateTaken",
    "DateAdded",
    "FilePath",
    "MediaType",
]


def _parse_kind(value: str) -> MediaKind:
    """Parse `image`/`video` (case-insensitive) into a `MediaKind`."""
    return MediaKind(str(value).strip().lower())


def _optional(value: str | None) -> str | None:
    text = (value or "").strip()
    return text or None


def _parse_seconds(value: str | None) -> int | None:
    text = _optional(value)
    if text is None or not text.lstrip("-").isdigit():
        return None
    return int(text)


class CsvMediaCatalog(MediaCatalog):
    """Query media records stored in a CSV file."""

    def __init__(self, csv_path: str | Path) -> None:
        self._path = Path(csv_path)

    def load(self) -> Iterator[CatalogRecord]:
        """Yield every valid `CatalogRecord` in file order."""
        with self._path.open("r", encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            # Extra columns are accepted and ignored
            missing = [h for h in CSV_HEADERS if h not in (reader.fieldnames or [])]
            if missing:
                raise ValueError(f"CSV missing required headers: {missing}")

            for row in reader:
                try:
                    yield CatalogRecord(
                        id=int(row.get("Id", "") or ""),
                        folder=(row.get("Folder", "") or "").strip(),
                        date_taken=_optional(row.get("DateTaken")),
                        date_added=_optional(row.get("DateAdded")),
                        file_path=(row.get("FilePath", "") or "").strip(),
                        kind=_parse_kind(row.get("MediaType", "")),
                    )
                except (ValueError, TypeError, KeyError) as ex:
                    logger.error("Catalog row error: {} | row={}", ex, row)
                    continue

    def query(self, start_s: int, end_s: int, folders: Iterable[str]) -> list[CatalogRecord]:
        """Return records added within `[start_s, end_s]`, newest first."""
        selected = set(folders)
        matches: list[tuple[int, CatalogRecord]] = []
        for record in self.load():
            if selected and record.folder not in selected:
                continue
            added = _parse_seconds(record.date_added)
            if added is None or added < start_s or added > end_s:
                continue
            matches.append((added, record))
        matches.sort(key=lambda m: m[0], reverse=True)
        return [record for _, record in matches]

    def folders(self) -> list[str]:
        """Return the distinct folder names, sorted."""
        return sorted({record.folder for record in self.load() if record.folder})
