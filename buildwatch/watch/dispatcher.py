"""Dispatcher: run a route's composition whenever one of its files changes.

One watchdog subscription is registered per route. Events arrive on the
observer thread and are handed over to the event loop, where each event
spawns a fresh run of the route's composition. When the run has fully
completed (success or failure), the reload notifier is called once.

Runs are not debounced or deduplicated: rapid events on the same route
produce overlapping runs.
"""

import asyncio
import os
from pathlib import Path
from typing import Callable, List, Optional, Set, Union

import structlog
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from buildwatch.compose import CompositionRunner, RunResult
from buildwatch.routing import Route, RouteTable
from .reload import LogNotifier, ReloadNotifier

logger = structlog.get_logger(__name__)

# opened/closed events carry no content change
WATCHED_EVENT_TYPES = frozenset({
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
})


class RouteEventHandler(FileSystemEventHandler):
    """Watchdog handler bound to a single route."""

    def __init__(self, route: Route, on_change: Callable[[Route, str], None]):
        super().__init__()
        self.route = route
        self.on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in WATCHED_EVENT_TYPES:
            return

        paths = [os.fsdecode(event.src_path)]
        dest_path = getattr(event, 'dest_path', None)
        if dest_path:
            paths.append(os.fsdecode(dest_path))

        for path in paths:
            if self.route.matches(path):
                self.on_change(self.route, path)
                return


class Dispatcher:
    """Bind a RouteTable to filesystem events and a reload notifier.

    Example:
        dispatcher = Dispatcher(table, CommandNotifier("browser-sync reload"))
        await dispatcher.serve_forever()

    Tests and custom event sources can call `dispatch(path)` directly
    from inside the running loop.
    """

    def __init__(
        self,
        table: RouteTable,
        notifier: Optional[ReloadNotifier] = None,
        runner: Optional[CompositionRunner] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.table = table
        self.notifier = notifier if notifier is not None else LogNotifier()
        self.runner = runner if runner is not None else CompositionRunner(name='watch')
        self._observer_factory = observer_factory
        self._observer = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._runs: Set[asyncio.Task] = set()
        self.runs_started = 0
        self.runs_completed = 0

    def dispatch(self, path: Union[str, Path]) -> List['asyncio.Task[RunResult]']:
        """Start a run for every route matching path.

        Must be called from the event loop thread.

        Returns:
            The spawned run tasks (one per matching route)
        """
        return [self.trigger(route, path) for route in self.table.find_routes(path)]

    def trigger(self, route: Route, path: Union[str, Path, None] = None) -> 'asyncio.Task[RunResult]':
        """Start a fresh run of route's composition."""
        loop = asyncio.get_running_loop()
        self.runs_started += 1
        task = loop.create_task(self._run_route(route, path))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    async def _run_route(self, route: Route, path) -> Optional[RunResult]:
        logger.info("route_triggered", route=route.name,
                    path=str(path) if path is not None else None)
        result = None
        try:
            result = await self.runner.run(route.node)
        except Exception:
            logger.exception("route_crashed", route=route.name)
        else:
            if result.failed:
                logger.error(
                    "route_failed",
                    route=route.name,
                    failed=[f.task_name for f in result.failures],
                )
            else:
                logger.info("route_finished", route=route.name,
                            elapsed=round(result.elapsed, 3))

        self.runs_completed += 1
        if route.notify:
            try:
                self.notifier.notify(route)
            except Exception:
                logger.exception("reload_failed", route=route.name)
        return result

    def _on_change(self, route: Route, path: str) -> None:
        # called on the observer thread
        self._loop.call_soon_threadsafe(self.trigger, route, path)

    async def start(self) -> None:
        """Register one filesystem subscription per route and start watching."""
        if self._observer is not None:
            raise RuntimeError("Dispatcher already started")
        self._loop = asyncio.get_running_loop()
        observer = self._observer_factory()

        for route in self.table:
            handler = RouteEventHandler(route, self._on_change)
            for root in route.watch_roots:
                if not root.is_dir():
                    logger.warning("watch_root_missing", route=route.name,
                                   root=str(root))
                    continue
                observer.schedule(handler, str(root), recursive=True)
            logger.debug("route_watched", route=route.name,
                         patterns=[str(p) for p in route.patterns])

        observer.start()
        self._observer = observer
        logger.info("watching", routes=len(self.table))

    def stop(self) -> None:
        """Tear down all filesystem subscriptions."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        logger.info("watch_stopped")

    async def wait_idle(self) -> None:
        """Wait until no run is in flight (new runs started meanwhile included)."""
        while self._runs:
            await asyncio.gather(*list(self._runs))

    async def serve_forever(self) -> None:
        """Watch until cancelled. Never completes on its own."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            self.stop()

    @property
    def in_flight(self) -> int:
        """Number of runs currently executing."""
        return len(self._runs)
