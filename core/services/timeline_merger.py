"""Merge location samples and indexed media into a `Timeline`.

Media without a geotag are placed by interpolating between the nearest known
samples before and after their capture time.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Mapping, Sequence
from dataclasses import replace

from loguru import logger

from core.models import LatLng, LocationSample, MediaItem, Timeline
from core.services.geo import interpolate
from core.services.interfaces import MediaIndexResult, ProgressSink
from core.services.progress import MERGE_RANGE, ProgressRange


def floor_ceiling(
    keys: Sequence[int], timestamp: int, exclude: int | None = None
) -> tuple[int | None, int | None]:
    """Return the nearest keys at-or-before and at-or-after `timestamp`.

    `keys` must be sorted ascending. A key equal to `exclude` is passed over.
    """
    floor: int | None = None
    i = bisect_right(keys, timestamp) - 1
    if i >= 0 and keys[i] == exclude:
        i -= 1
    if i >= 0:
        floor = keys[i]

    ceiling: int | None = None
    j = bisect_left(keys, timestamp)
    if j < len(keys) and keys[j] == exclude:
        j += 1
    if j < len(keys):
        ceiling = keys[j]
    return floor, ceiling


def interpolate_at(
    samples: Mapping[int, LocationSample],
    keys: Sequence[int],
    timestamp: int,
    exclude: int | None = None,
) -> LatLng | None:
    """Estimate the position at `timestamp` from the surrounding samples.

    Returns None when no sample is available on either side.
    """
    floor_key, ceiling_key = floor_ceiling(keys, timestamp, exclude)
    if floor_key is None and ceiling_key is None:
        return None
    if floor_key is None:
        floor_key = ceiling_key
    elif ceiling_key is None:
        ceiling_key = floor_key

    floor, ceiling = samples[floor_key], samples[ceiling_key]
    fraction = 0.5
    if ceiling.timestamp_ms != floor.timestamp_ms:
        fraction = (timestamp - floor.timestamp_ms) / (ceiling.timestamp_ms - floor.timestamp_ms)
    return interpolate(floor.position, ceiling.position, fraction)


class TimelineMerger:
    """Combine the outputs of the location reader and the media indexer."""

    def merge(
        self,
        samples: Mapping[int, LocationSample],
        index: MediaIndexResult,
        progress: ProgressSink | None = None,
    ) -> Timeline:
        """Build the final timeline.

        Args:
            samples: Samples read from the location log, keyed by timestamp.
            index: Result of media indexing; its contributed samples are added
                to the sample map before placing ungeotagged items.
            progress: Receives 100 once merging is done.
        """
        rng = ProgressRange(*MERGE_RANGE, sink=progress)
        combined: dict[int, LocationSample] = dict(samples)
        combined.update(index.contributed_samples)
        keys = sorted(combined)

        media: list[MediaItem] = list(index.geotagged)
        dropped = 0
        for item in index.ungeotagged:
            # A sample contributed at the item's own time is not a donor for it
            own = item.timestamp_ms if item.timestamp_ms in index.contributed_samples else None
            position = interpolate_at(combined, keys, item.timestamp_ms, exclude=own)
            if position is None:
                dropped += 1
                continue
            media.append(replace(item, position=position, has_direct_geotag=False))

        if dropped:
            logger.info("{} media items could not be placed (no location samples)", dropped)

        unique: dict[int, MediaItem] = {}
        for item in media:
            unique.setdefault(item.id, item)
        timeline = Timeline(samples=combined, media_items=tuple(unique.values()))
        logger.info(
            "Timeline merged: {} samples, {} media items ({} interpolated)",
            timeline.sample_count,
            len(timeline.media_items),
            len(media) - len(index.geotagged),
        )
        rng.finish()
        return timeline
