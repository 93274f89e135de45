"""Weighted progress reporting.

Each pipeline phase owns a slice `[low, high]` of the overall 0..100 range and
reports its own completion; `ProgressRange` maps that onto the overall value and
only forwards values that increase.
"""

from __future__ import annotations

from core.services.interfaces import ProgressSink

LOCATION_LOG_RANGE = (2, 70)
MEDIA_INDEX_RANGE = (70, 98)
MERGE_RANGE = (98, 100)


class ProgressRange:
    """Map phase-local progress onto an overall progress slice."""

    def __init__(self, low: int, high: int, sink: ProgressSink | None = None) -> None:
        if not 0 <= low <= high <= 100:
            raise ValueError(f"Invalid progress range: [{low}, {high}]")
        self.low = low
        self.high = high
        self._sink = sink
        self._last: int | None = None

    @property
    def last(self) -> int | None:
        """Last value forwarded to the sink, if any."""
        return self._last

    def start(self) -> None:
        self._emit(self.low)

    def report(self, done: int, total: int) -> None:
        """Report `done` out of `total` units of this phase."""
        if total <= 0:
            return
        done = max(0, min(done, total))
        self._emit(self.low + done * (self.high - self.low) // total)

    def finish(self) -> None:
        self._emit(self.high)

    def _emit(self, value: int) -> None:
        value = min(value, self.high)
        if self._last is not None and value <= self._last:
            return
        self._last = value
        if self._sink is not None:
            self._sink(value)
