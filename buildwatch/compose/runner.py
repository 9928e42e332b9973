"""Cooperative scheduler for compositions.

Runs a composition tree on the current asyncio event loop:

- Leaf: run the TaskUnit and wait for its completion signal
- Series: start each child after the previous one completed successfully;
  the first failure stops the series
- Parallel: start every child at once, join on all of them; a failing
  child never cancels its siblings

Failures are returned as values inside RunResult, never raised.
There are no timeouts, retries or cancellation: a unit that never
completes stalls its composition.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from buildwatch.exceptions import BaseFail
from .nodes import Leaf, Node, NodeLike, Parallel, Series, as_node

logger = structlog.get_logger(__name__)


@dataclass
class TaskFailure:
    """A failed TaskUnit inside a run."""

    task_name: str
    failure: BaseFail

    def get_msg(self) -> str:
        return "%s: %s" % (self.task_name, self.failure.get_msg())


@dataclass
class RunResult:
    """Result of running one composition."""

    failures: List[TaskFailure] = field(default_factory=list)
    """Failed units, series-ordered and in child order for parallels."""

    executed: List[str] = field(default_factory=list)
    """Names of units that ran, in completion order."""

    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def failed(self) -> bool:
        """Return True if at least one unit failed."""
        return bool(self.failures)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def elapsed(self) -> float:
        """Seconds between start and completion of the run."""
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return self.finished_at - self.started_at


@dataclass
class CompositionRunner:
    """Execute composition trees.

    The runner itself is stateless between runs; every call to `run`
    builds its own RunResult, so one runner may drive overlapping runs.

    Example:
        runner = CompositionRunner()
        result = await runner.run(series(compile_styles, optimize_styles))
        if result.failed:
            for failure in result.failures:
                print(failure.get_msg())
    """

    name: str = 'run'
    """Label bound to log events emitted by this runner."""

    async def run(self, node: NodeLike) -> RunResult:
        """Run a composition from its initial state until fully complete.

        Args:
            node: Composition node, TaskUnit or callable

        Returns:
            RunResult with failures and executed unit names
        """
        root = as_node(node)
        result = RunResult(started_at=time.monotonic())
        result.failures = await self._run_node(root, result)
        result.finished_at = time.monotonic()
        return result

    async def _run_node(self, node: Node, result: RunResult) -> List[TaskFailure]:
        if isinstance(node, Leaf):
            return await self._run_leaf(node, result)
        if isinstance(node, Series):
            return await self._run_series(node, result)
        if isinstance(node, Parallel):
            return await self._run_parallel(node, result)
        raise TypeError("Unknown composition node %r" % (node,))

    async def _run_leaf(self, leaf: Leaf, result: RunResult) -> List[TaskFailure]:
        task = leaf.task
        logger.debug("task_started", runner=self.name, task=task.name)
        failure = await task.run()
        result.executed.append(task.name)
        if failure is None:
            logger.debug("task_finished", runner=self.name, task=task.name)
            return []
        logger.error("task_failed", runner=self.name, task=task.name,
                     error=failure.message)
        return [TaskFailure(task.name, failure)]

    async def _run_series(self, node: Series, result: RunResult) -> List[TaskFailure]:
        for child in node.children:
            failures = await self._run_node(child, result)
            if failures:
                # remaining children never start
                return failures
        return []

    async def _run_parallel(self, node: Parallel, result: RunResult) -> List[TaskFailure]:
        if not node.children:
            return []
        child_failures = await asyncio.gather(
            *(self._run_node(child, result) for child in node.children))
        failures: List[TaskFailure] = []
        for each in child_failures:
            failures.extend(each)
        return failures


def run_sync(node: NodeLike, name: str = 'run') -> RunResult:
    """Run a composition to completion on a new event loop.

    Convenience for entry points that are not already async.
    """
    return asyncio.run(CompositionRunner(name=name).run(node))
