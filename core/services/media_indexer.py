"""Media catalog indexing.

Queries the catalog for a time window and a set of folders, derives a capture
timestamp for every record, keeps the most recent `max_media_items` and splits
them into items with and without an embedded geotag.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from core.models import LatLng, LocationSample, MediaItem, MediaKind
from core.services.interfaces import (
    CancelCheck,
    CatalogRecord,
    GeotagReader,
    MediaCatalog,
    MediaIndexResult,
    ProgressSink,
)
from core.services.progress import MEDIA_INDEX_RANGE, ProgressRange

DEFAULT_MAX_MEDIA_ITEMS = 1000
UNPLACED = LatLng(0.0, 0.0)


def _parse_long(value: str | None) -> int | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or not text.lstrip("-").isdigit():
        return None
    return int(text)


def derive_timestamp_ms(record: CatalogRecord) -> int | None:
    """Return the capture time of `record` in epoch milliseconds.

    `date_taken` (milliseconds) wins; otherwise `date_added` (seconds) is scaled
    to milliseconds. Returns None when neither is usable.
    """
    taken = _parse_long(record.date_taken)
    if taken is not None:
        return taken
    added = _parse_long(record.date_added)
    if added is not None:
        return added * 1000
    return None


def _valid_position(p: LatLng) -> bool:
    return -90.0 <= p.lat <= 90.0 and -180.0 <= p.lng <= 180.0


class MediaIndexer:
    """Build the geotagged/ungeotagged partitions for a load."""

    def __init__(
        self,
        catalog: MediaCatalog,
        geotag_reader: GeotagReader | None = None,
        max_media_items: int = DEFAULT_MAX_MEDIA_ITEMS,
    ) -> None:
        if max_media_items <= 0:
            raise ValueError("max_media_items must be positive")
        self._catalog = catalog
        self._geotags = geotag_reader
        self.max_media_items = max_media_items

    def index(
        self,
        start_time: int,
        end_time: int,
        folders: Iterable[str] = (),
        progress: ProgressSink | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> MediaIndexResult:
        """Index media captured within `[start_time, end_time]` (epoch ms).

        The catalog is queried by date added; records whose derived capture
        time falls outside the window are dropped.

        Args:
            start_time: Inclusive lower bound in epoch milliseconds.
            end_time: Inclusive upper bound in epoch milliseconds.
            folders: Folder names to include; empty includes every folder.
            progress: Receives overall progress values in [70, 98].
            is_cancelled: Polled once per record; a cancelled index returns the
                partial result without reaching 98.
        """
        result = MediaIndexResult()
        rng = ProgressRange(*MEDIA_INDEX_RANGE, sink=progress)

        candidates = self._collect(start_time, end_time, folders, is_cancelled)
        if candidates is None:
            return result
        total = len(candidates)
        logger.info("Indexing {} media items", total)

        for processed, (timestamp, record) in enumerate(candidates, 1):
            if is_cancelled is not None and is_cancelled():
                logger.info("Media indexing cancelled after {} of {} items", processed - 1, total)
                return result

            position = self._geotag_of(record)
            if position is not None:
                item = MediaItem(
                    path=record.file_path,
                    id=record.id,
                    timestamp_ms=timestamp,
                    kind=record.kind,
                    position=position,
                    has_direct_geotag=True,
                )
                result.geotagged.append(item)
                result.contributed_samples[timestamp] = LocationSample(timestamp, position)
            else:
                result.ungeotagged.append(
                    MediaItem(
                        path=record.file_path,
                        id=record.id,
                        timestamp_ms=timestamp,
                        kind=record.kind,
                        position=UNPLACED,
                        has_direct_geotag=False,
                    )
                )
            rng.report(processed, total)

        logger.info(
            "Media indexed: {} geotagged, {} without geotag",
            len(result.geotagged),
            len(result.ungeotagged),
        )
        rng.finish()
        return result

    def _collect(
        self,
        start_time: int,
        end_time: int,
        folders: Iterable[str],
        is_cancelled: CancelCheck | None,
    ) -> list[tuple[int, CatalogRecord]] | None:
        """Query the catalog and return the capped, newest-first candidates.

        Returns None if cancelled while querying.
        """
        selected = sorted(set(folders))
        candidates: list[tuple[int, CatalogRecord]] = []
        seen_ids: set[int] = set()
        try:
            for record in self._catalog.query(start_time // 1000, end_time // 1000, selected):
                if is_cancelled is not None and is_cancelled():
                    return None
                if record.id in seen_ids:
                    logger.debug("Duplicate catalog id {} ignored", record.id)
                    continue
                timestamp = derive_timestamp_ms(record)
                if timestamp is None:
                    logger.info("Media with no date info: {} - {}", record.folder, record.file_path)
                    continue
                if timestamp < start_time or timestamp > end_time:
                    logger.info(
                        "Media taken outside the window: {} at {}", record.file_path, timestamp
                    )
                    continue
                seen_ids.add(record.id)
                candidates.append((timestamp, record))
        except (OSError, ValueError) as ex:
            logger.error("Media catalog query failed: {}", ex)

        candidates.sort(key=lambda c: c[0], reverse=True)
        if len(candidates) > self.max_media_items:
            logger.info(
                "Limiting media from {} to {} most recent items",
                len(candidates),
                self.max_media_items,
            )
            del candidates[self.max_media_items :]
        return candidates

    def _geotag_of(self, record: CatalogRecord) -> LatLng | None:
        """Return the embedded position of an image record, if any."""
        if record.kind != MediaKind.IMAGE or self._geotags is None:
            return None
        try:
            position = self._geotags.read_geotag(record.file_path)
        except (OSError, ValueError) as ex:
            logger.warning("Geotag read failed for {}: {}", record.file_path, ex)
            return None
        if position is None:
            return None
        if not _valid_position(position):
            logger.warning("Ignoring out-of-range geotag {} for {}", position, record.file_path)
            return None
        return position
