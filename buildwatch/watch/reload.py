"""Reload notifiers: tell connected browser clients to refresh.

A notifier exposes a single fire-and-forget operation, `notify(route)`.
The dispatcher calls it exactly once per completed route run, after the
whole composition settled. Notifiers never raise into the dispatcher.
"""

import asyncio
import os
from abc import ABC, abstractmethod
from typing import Callable, List, Set, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from buildwatch.routing import Route

logger = structlog.get_logger(__name__)


class ReloadNotifier(ABC):
    """Base class for reload signals."""

    @abstractmethod
    def notify(self, route: 'Route') -> None:
        """Signal clients to refresh after `route` finished a run."""
        pass


class LogNotifier(ReloadNotifier):
    """Only log the reload. Used when no reload command is configured."""

    def notify(self, route: 'Route') -> None:
        logger.info("reload", route=route.name)


class CallbackNotifier(ReloadNotifier):
    """Call a function with the route.

    Example:
        notifier = CallbackNotifier(lambda route: server.reload())
    """

    def __init__(self, callback: Callable[['Route'], None]):
        self.callback = callback

    def notify(self, route: 'Route') -> None:
        try:
            self.callback(route)
        except Exception as e:
            logger.error("reload_failed", route=route.name, error=str(e))


class RecordingNotifier(ReloadNotifier):
    """Record every notification (dry runs and tests)."""

    def __init__(self):
        self.calls: List['Route'] = []

    def notify(self, route: 'Route') -> None:
        self.calls.append(route)

    @property
    def count(self) -> int:
        return len(self.calls)

    def names(self) -> List[str]:
        return [route.name for route in self.calls]


class CommandNotifier(ReloadNotifier):
    """Run a shell command, e.g. ``browser-sync reload``.

    The command is started on the running event loop and not awaited by
    the caller. The route name is injected as BUILDWATCH_ROUTE in the
    command's environment. A non-zero exit status is logged.
    """

    def __init__(self, command: str):
        self.command = command
        self._pending: Set[asyncio.Task] = set()

    def notify(self, route: 'Route') -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(route.name))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run(self, route_name: str) -> int:
        env = os.environ.copy()
        env['BUILDWATCH_ROUTE'] = route_name
        try:
            proc = await asyncio.create_subprocess_shell(
                self.command,
                env=env,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await proc.communicate()
        except OSError as e:
            logger.error("reload_failed", route=route_name, command=self.command,
                         error=str(e))
            return -1

        if proc.returncode != 0:
            logger.error(
                "reload_failed",
                route=route_name,
                command=self.command,
                returncode=proc.returncode,
                stderr=stderr.decode(errors='replace').strip(),
            )
        else:
            logger.info("reload", route=route_name)
        return proc.returncode

    async def wait(self) -> None:
        """Wait for reload commands still running."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    def __repr__(self) -> str:
        return f"CommandNotifier({self.command!r})"
