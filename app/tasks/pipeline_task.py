"""Worker thread running one load of the timeline pipeline."""

from __future__ import annotations

from collections.abc import Callable
import threading

from loguru import logger

from core.config import PipelineSettings
from core.models import LoadRequest, LocationSample, Timeline
from core.services.interfaces import GeotagReader, LocationLogSource, MediaCatalog
from core.services.location_reader import LocationLogReader
from core.services.media_indexer import MediaIndexer
from core.services.timeline_merger import TimelineMerger

ProgressCallback = Callable[[int, int], None]
ResultCallback = Callable[[int, Timeline], None]


class PipelineRun:
    """One cancellable execution of the load pipeline on a worker thread.

    The phases run in order (location log, media index, merge). Every progress
    value and the final timeline are handed to the callbacks together with the
    run's `token`, so the owner can drop output from runs it has replaced.
    Cancellation is cooperative: the phases poll `cancelled` between records.
    """

    def __init__(
        self,
        *,
        request: LoadRequest,
        token: int,
        log_source: LocationLogSource,
        catalog: MediaCatalog,
        geotag_reader: GeotagReader | None,
        settings: PipelineSettings,
        on_progress: ProgressCallback,
        on_result: ResultCallback,
    ) -> None:
        self.request = request
        self.token = token
        self._log_source = log_source
        self._catalog = catalog
        self._geotag_reader = geotag_reader
        self._settings = settings
        self._on_progress = on_progress
        self._on_result = on_result
        self._cancel = threading.Event()
        self._done = threading.Event()
        self._thread = threading.Thread(target=self.run, name=f"timeline-load-{token}", daemon=True)

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        """Ask the run to stop at its next polling point."""
        self._cancel.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run has returned; False if `timeout` expired first."""
        return self._done.wait(timeout)

    def run(self) -> None:
        try:
            timeline = self._execute()
            if timeline is not None and not self.cancelled:
                self._on_result(self.token, timeline)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("Load run {} failed: {}", self.token, ex)
        finally:
            self._done.set()

    def _progress(self, value: int) -> None:
        if not self.cancelled:
            self._on_progress(self.token, value)

    def _execute(self) -> Timeline | None:
        request = self.request
        logger.info(
            "Load run {} started: {} -> {}, folders={}",
            self.token,
            request.start_time,
            request.end_time,
            sorted(request.selected_folders) or "all",
        )

        samples = self._read_location_log()
        if self.cancelled:
            logger.info("Load run {} cancelled after reading the location log", self.token)
            return None

        indexer = MediaIndexer(
            self._catalog, self._geotag_reader, max_media_items=self._settings.max_media_items
        )
        index = indexer.index(
            request.start_time,
            request.end_time,
            request.selected_folders,
            progress=self._progress,
            is_cancelled=self._cancel.is_set,
        )
        if self.cancelled:
            logger.info("Load run {} cancelled while indexing media", self.token)
            return None

        timeline = TimelineMerger().merge(samples, index, progress=self._progress)
        logger.info("Load run {} finished", self.token)
        return timeline

    def _read_location_log(self) -> dict[int, LocationSample]:
        reader = LocationLogReader(
            accuracy_threshold=self._settings.accuracy_threshold,
            progress_interval=self._settings.progress_interval,
        )
        request = self.request
        try:
            opened = self._log_source.open(request.log_source_ref)
        except OSError as ex:
            logger.warning("Cannot open location log {}: {}", request.log_source_ref, ex)
            opened = None

        if opened is None:
            return reader.read_into(
                None, request.start_time, request.end_time, progress=self._progress
            )
        with opened.stream:
            return reader.read_into(
                opened.stream,
                request.start_time,
                request.end_time,
                size_hint=opened.size_hint,
                progress=self._progress,
                is_cancelled=self._cancel.is_set,
            )
