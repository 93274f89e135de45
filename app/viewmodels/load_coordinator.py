"""View-model owning the timeline load and its observable state."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
import threading

from loguru import logger

from app.tasks.pipeline_task import PipelineRun
from core.config import PipelineSettings
from core.errors import CoordinatorClosedError
from core.models import LoadRequest, LoadState, Timeline
from core.services.interfaces import GeotagReader, LocationLogSource, MediaCatalog

StateObserver = Callable[[LoadState], None]

IGNORED_FOLDER_PREFIX = "IMG_"


class LoadCoordinator:
    """Runs at most one pipeline load at a time and publishes its `LoadState`.

    A new, different request cancels the running load before the state is reset,
    and each run publishes under a generation token, so late output from a
    replaced run is never seen by observers.

    Observers are called on the thread that produced the update (the caller of
    `submit` for resets, the worker thread otherwise) while the coordinator lock
    is held; they may call back into the coordinator.
    """

    def __init__(
        self,
        log_source: LocationLogSource,
        catalog: MediaCatalog,
        geotag_reader: GeotagReader | None = None,
        settings: PipelineSettings | None = None,
    ) -> None:
        """Create a LoadCoordinator.

        Args:
            log_source: Resolves a request's `log_source_ref` to a stream.
            catalog: Media catalog to index.
            geotag_reader: Reads embedded image geotags; None disables them.
            settings: Pipeline limits (defaults to `PipelineSettings()`).
        """
        self._log_source = log_source
        self._catalog = catalog
        self._geotag_reader = geotag_reader
        self._settings = settings or PipelineSettings()
        self._lock = threading.RLock()
        self._state = LoadState()
        self._request: LoadRequest | None = None
        self._run: PipelineRun | None = None
        self._generation = 0
        self._observers: list[StateObserver] = []
        self._closed = False

    def __enter__(self) -> LoadCoordinator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Public API
    def submit(self, request: LoadRequest) -> None:
        """Start loading `request`, replacing any load for a different request."""
        with self._lock:
            if self._closed:
                raise CoordinatorClosedError("LoadCoordinator is closed")
            if request == self._request:
                logger.debug("Request unchanged, keeping current load")
                return
            if self._run is not None:
                self._run.cancel()
                logger.info("Cancelled load run {}", self._run.token)

            self._generation += 1
            self._request = request
            self._set_state(LoadState())
            self._run = PipelineRun(
                request=request,
                token=self._generation,
                log_source=self._log_source,
                catalog=self._catalog,
                geotag_reader=self._geotag_reader,
                settings=self._settings,
                on_progress=self._publish_progress,
                on_result=self._publish_result,
            )
            self._run.start()

    def current_state(self) -> LoadState:
        with self._lock:
            return self._state

    @property
    def current_request(self) -> LoadRequest | None:
        with self._lock:
            return self._request

    def subscribe(self, observer: StateObserver, *, replay: bool = False) -> Callable[[], None]:
        """Register `observer` for state updates and return an unsubscribe function.

        With `replay`, the current state is delivered immediately.
        """
        with self._lock:
            self._observers.append(observer)
            if replay:
                self._notify(observer, self._state)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the current run to finish; True if it did within `timeout`."""
        with self._lock:
            run = self._run
        if run is None:
            return True
        return run.wait(timeout)

    def cancel(self) -> None:
        """Cancel the current load; the same request may be submitted again."""
        with self._lock:
            if self._run is not None and not self._run.finished:
                self._run.cancel()
                logger.info("Cancelled load run {}", self._run.token)
            self._request = None

    def close(self) -> None:
        """Cancel any load and reject further requests."""
        with self._lock:
            self.cancel()
            self._closed = True

    def list_folders(self) -> list[str]:
        """Return the catalog's folder names, sorted, without camera-roll buckets."""
        try:
            names = self._catalog.folders()
        except (OSError, ValueError) as ex:
            logger.error("Listing catalog folders failed: {}", ex)
            return []
        folders: list[str] = []
        for name in sorted(set(names)):
            if not name:
                continue
            if name.startswith(IGNORED_FOLDER_PREFIX):
                logger.debug("Folder ignored: {}", name)
                continue
            folders.append(name)
        return folders

    # Publication from runs
    def _is_current(self, token: int) -> bool:
        run = self._run
        return run is not None and token == self._generation and not run.cancelled

    def _publish_progress(self, token: int, progress: int) -> None:
        with self._lock:
            if not self._is_current(token) or self._state.completed:
                return
            if progress <= self._state.progress:
                return
            self._set_state(replace(self._state, progress=min(progress, 100)))

    def _publish_result(self, token: int, timeline: Timeline) -> None:
        with self._lock:
            if not self._is_current(token) or self._state.completed:
                logger.debug("Dropping result of stale load run {}", token)
                return
            self._set_state(replace(self._state, result=timeline, completed=True))

    def _set_state(self, state: LoadState) -> None:
        self._state = state
        for observer in list(self._observers):
            self._notify(observer, state)

    @staticmethod
    def _notify(observer: StateObserver, state: LoadState) -> None:
        try:
            observer(state)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.exception("State observer failed: {}", ex)
