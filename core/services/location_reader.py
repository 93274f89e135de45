"""Streaming reader for location history logs.

The log is a JSON document of the shape::

    {"locations": [{"timestampMs": "1609459200000", "latitudeE7": 520000000,
                    "longitudeE7": 40000000, "accuracy": 12}, ...]}

Records are parsed one at a time with `ijson`, so arbitrarily large exports are
read without loading them into memory. Bad records are skipped; a broken
document ends the read early with whatever was collected.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO

import ijson
from loguru import logger

from core.models import LatLng, LocationSample
from core.services.interfaces import CancelCheck, ProgressSink
from core.services.progress import LOCATION_LOG_RANGE, ProgressRange

DEFAULT_ACCURACY_THRESHOLD = 100
DEFAULT_PROGRESS_INTERVAL = 1000
RECORDS_PREFIX = "locations.item"


def parse_timestamp_ms(value: Any) -> int | None:
    """Parse a log timestamp into epoch milliseconds.

    Accepts integers, digit strings (`timestampMs`) and ISO-8601 strings
    (`timestamp`, with an optional trailing `Z`). Returns None otherwise.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            return None
        return int(dt.timestamp() * 1000)
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


class _CountingStream:
    """Wrap a binary stream and count the bytes handed to the parser."""

    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self.consumed = 0

    def read(self, size: int = -1) -> bytes:
        data = self._raw.read(size)
        self.consumed += len(data)
        return data


@dataclass
class ReadStats:
    """Counters describing the last read."""

    records_seen: int = 0
    records_kept: int = 0
    records_skipped: int = 0
    failed: bool = False


class LocationLogReader:
    """Read `LocationSample`s from a location log within a time range."""

    def __init__(
        self,
        accuracy_threshold: float = DEFAULT_ACCURACY_THRESHOLD,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    ) -> None:
        if progress_interval <= 0:
            raise ValueError("progress_interval must be positive")
        self.accuracy_threshold = accuracy_threshold
        self.progress_interval = progress_interval
        self.stats = ReadStats()

    def read(
        self,
        stream: BinaryIO | None,
        start_time: int,
        end_time: int,
        size_hint: int = 0,
        progress: ProgressSink | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> Iterator[LocationSample]:
        """Yield samples with `start_time <= timestamp <= end_time`.

        Args:
            stream: Binary stream positioned at the start of the log, or None.
            start_time: Inclusive lower bound in epoch milliseconds.
            end_time: Inclusive upper bound in epoch milliseconds.
            size_hint: Approximate number of bytes in `stream`, for progress.
            progress: Receives overall progress values in [2, 70].
            is_cancelled: Polled every `progress_interval` records.
        """
        self.stats = ReadStats()
        stats = self.stats
        rng = ProgressRange(*LOCATION_LOG_RANGE, sink=progress)
        rng.start()

        if stream is None:
            logger.info("No location log given, skipping location history")
            rng.finish()
            return

        counting = _CountingStream(stream)
        since_update = 0
        try:
            for record in ijson.items(counting, RECORDS_PREFIX, use_float=True):
                stats.records_seen += 1
                sample = self._parse(record, start_time, end_time)
                if sample is not None:
                    stats.records_kept += 1
                    yield sample

                since_update += 1
                if since_update == self.progress_interval:
                    since_update = 0
                    if size_hint > 0:
                        rng.report(counting.consumed, size_hint)
                    if is_cancelled is not None and is_cancelled():
                        logger.info(
                            "Location log read cancelled after {} records", stats.records_seen
                        )
                        return
        except (ijson.JSONError, OSError, ValueError) as ex:
            if counting.consumed == 0 and isinstance(ex, ijson.JSONError):
                logger.info("Location log is empty")
                rng.finish()
                return
            stats.failed = True
            logger.warning(
                "Failed to read location log after {} records ({} kept): {}",
                stats.records_seen,
                stats.records_kept,
                ex,
            )

        if stats.records_skipped:
            logger.info("Skipped {} malformed location records", stats.records_skipped)
        logger.info(
            "Location log read: {} records, {} within range", stats.records_seen, stats.records_kept
        )
        rng.finish()

    def read_into(
        self,
        stream: BinaryIO | None,
        start_time: int,
        end_time: int,
        size_hint: int = 0,
        progress: ProgressSink | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> dict[int, LocationSample]:
        """Read the whole range into a timestamp -> sample mapping."""
        samples: dict[int, LocationSample] = {}
        for sample in self.read(stream, start_time, end_time, size_hint, progress, is_cancelled):
            samples[sample.timestamp_ms] = sample
        return samples

    def _parse(self, record: Any, start_time: int, end_time: int) -> LocationSample | None:
        """Return the sample for `record` if it passes the filters, else None."""
        if not isinstance(record, dict):
            self.stats.records_skipped += 1
            return None

        raw_ts = record.get("timestampMs")
        if raw_ts is None:
            raw_ts = record.get("timestamp")
        timestamp = parse_timestamp_ms(raw_ts)
        if timestamp is None:
            self.stats.records_skipped += 1
            return None
        if timestamp < start_time or timestamp > end_time:
            return None

        lat_e7 = _as_int(record.get("latitudeE7"))
        lng_e7 = _as_int(record.get("longitudeE7"))
        accuracy = _as_number(record.get("accuracy"))
        if lat_e7 is None or lng_e7 is None or accuracy is None:
            self.stats.records_skipped += 1
            return None

        position = LatLng.from_e7(lat_e7, lng_e7)
        if not (-90.0 <= position.lat <= 90.0 and -180.0 <= position.lng <= 180.0):
            logger.debug("Location out of range at {}: {}", timestamp, position)
            self.stats.records_skipped += 1
            return None
        if accuracy > self.accuracy_threshold:
            return None
        return LocationSample(timestamp, position)
