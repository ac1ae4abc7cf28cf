"""Watch controller — re-run generation when watched files change.

Change detection uses watchdog. Its observer thread only forwards event
paths onto the asyncio loop; every decision (start a run, queue a rerun)
is taken on the loop thread, so the run flags need no locking.

While a run is in flight, any number of changes collapse into a single
rerun that starts when the current run finishes.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from grpcgen.models import DEFAULT_POLL_INTERVAL_MS, RunResult, WatchState

logger = logging.getLogger(__name__)

_CHANGE_EVENTS = frozenset({"created", "modified", "deleted", "moved", "closed"})


def _normalize(path: Any) -> str:
    return os.path.normcase(os.path.abspath(os.fsdecode(path)))


class _ChangeHandler(FileSystemEventHandler):
    """Forward watchdog events to the controller's loop."""

    def __init__(self, controller: WatchController) -> None:
        super().__init__()
        self._controller = controller

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        paths = {_normalize(event.src_path)}
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.add(_normalize(dest))
        self._controller.post(paths)


class WatchController:
    """Debounced re-run loop.

    Args:
        run: Coroutine function performing one generation pass.
        poll_interval_ms: When set, poll the filesystem at this interval
            instead of relying on native change notifications.
        observer_factory: Builds the watchdog observer; defaults to
            ``Observer`` or ``PollingObserver``.
    """

    def __init__(
        self,
        run: Callable[[], Awaitable[Optional[RunResult]]],
        *,
        poll_interval_ms: Optional[int] = None,
        observer_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.state = WatchState()
        self.poll_interval_ms = poll_interval_ms
        self._run = run
        self._observer_factory = observer_factory or self._default_observer
        self._observer: Any = None
        self._handler = _ChangeHandler(self)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue[Optional[set[str]]]] = None
        self._task: Optional[asyncio.Task[None]] = None

    def _default_observer(self) -> Any:
        if self.poll_interval_ms is not None:
            interval = self.poll_interval_ms or DEFAULT_POLL_INTERVAL_MS
            return PollingObserver(timeout=interval / 1000)
        return Observer()

    # ── subscriptions ───────────────────────────────────────────

    def subscribe(self, paths: Iterable[str]) -> None:
        """Watch exactly *paths* from now on."""
        watched = {_normalize(p) for p in paths}
        if watched == self.state.watched_paths:
            return
        self.state.watched_paths = watched
        if self._observer is None:
            return

        self._observer.unschedule_all()
        for directory in sorted({os.path.dirname(p) for p in watched}):
            if not os.path.isdir(directory):
                logger.debug("Not watching missing directory '%s'", directory)
                continue
            self._observer.schedule(self._handler, directory, recursive=False)
        logger.debug("Watching %d file(s)", len(watched))

    def is_watched(self, paths: Iterable[str]) -> bool:
        return any(p in self.state.watched_paths for p in paths)

    # ── events ──────────────────────────────────────────────────

    def post(self, paths: set[str]) -> None:
        """Hand changed paths to the loop. Safe to call from any thread."""
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(queue.put_nowait, paths)

    def request_run(self) -> None:
        """Start a run, or flag a single rerun if one is in flight."""
        if self.state.in_flight:
            self.state.rerun_requested = True
            return
        self.state.in_flight = True
        self._task = asyncio.get_running_loop().create_task(self._drive())

    async def _drive(self) -> None:
        try:
            while True:
                try:
                    await self._run()
                except Exception:
                    # A crashed run must not end watch mode.
                    logger.exception("Generation run failed unexpectedly")
                if not self.state.rerun_requested:
                    break
                self.state.rerun_requested = False
        finally:
            self.state.in_flight = False
        logger.info("Waiting for changes...")

    async def wait_idle(self) -> None:
        """Wait until no run is in flight."""
        while self._task is not None and not self._task.done():
            await self._task

    # ── lifecycle ───────────────────────────────────────────────

    async def start(self, paths: Iterable[str] = ()) -> None:
        """Run once, then re-run on changes until :meth:`stop` is called."""
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._observer = self._observer_factory()

        initial = set(paths)
        self.state.watched_paths = set()
        self.subscribe(initial)
        self._observer.start()
        try:
            self.request_run()
            while True:
                changed = await self._queue.get()
                if changed is None:
                    break
                if self.is_watched(changed):
                    logger.debug("Change detected: %s", ", ".join(sorted(changed)))
                    self.request_run()
            await self.wait_idle()
        finally:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def stop(self) -> None:
        """End the watch loop. Safe to call from any thread."""
        loop, queue = self._loop, self._queue
        if loop is None or queue is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(queue.put_nowait, None)
