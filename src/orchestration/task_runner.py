"""Run one async operation per package under a concurrency policy.

Every operation is allowed to settle; a failure never cancels siblings that
are already running subprocesses. If anything failed, the runner raises
:class:`errors.TaskBatchFailed` with every result once the batch is done.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from common.logging_utils import Timer, extra_context
from constants import Constants, OrderModes
from errors import ConfigError, TaskBatchFailed

if TYPE_CHECKING:
    from workspace.graph import DependencyGraph
    from workspace.package import Package

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[["Package"], Awaitable[Any]]


@dataclass
class ConcurrencyPolicy:
    """How a batch is scheduled.

    ``order`` is one of ``parallel`` (no ordering), ``serial`` (one at a time,
    list order) or ``topological`` (dependency waves). ``max_workers`` bounds
    parallelism inside a wave; ``None`` means unbounded.
    """

    order: str = OrderModes.PARALLEL.value
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        if self.order not in Constants.ORDER_MODES:
            raise ConfigError(f"Unknown order mode '{self.order}' (expected one of {', '.join(Constants.ORDER_MODES)})")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")


@dataclass
class TaskResult(Generic[T]):
    """Outcome of one package's operation."""

    package: Package
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TaskRunner:
    """Executes operations over packages; see module docstring for failure policy."""

    def __init__(self, policy: Optional[ConcurrencyPolicy] = None, graph: Optional[DependencyGraph] = None):
        self.policy = policy or ConcurrencyPolicy()
        self.graph = graph

    def _waves(self, packages: List[Package]) -> List[List[Package]]:
        if self.policy.order == OrderModes.SERIAL.value:
            return [[pkg] for pkg in packages]
        if self.policy.order == OrderModes.TOPOLOGICAL.value:
            if self.graph is None:
                raise ConfigError("topological order needs a dependency graph")
            return self.graph.batches(packages)
        return [list(packages)]

    async def _run_one(self, pkg: Package, operation: Operation, semaphore: Optional[asyncio.Semaphore]) -> TaskResult:
        with Timer() as timer:
            try:
                if semaphore is None:
                    value = await operation(pkg)
                else:
                    async with semaphore:
                        value = await operation(pkg)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.error(
                    "Task failed for %s: %s",
                    pkg.name,
                    exc,
                    extra=extra_context(event="task_exit", outcome="failure", target=pkg.primary_key),
                )
                return TaskResult(package=pkg, error=exc)
        logger.debug(
            "Task finished for %s",
            pkg.name,
            extra=extra_context(event="task_exit", outcome="success", duration_ms=timer.duration_ms()),
        )
        return TaskResult(package=pkg, value=value)

    async def run(self, packages: List[Package], operation: Operation) -> List[TaskResult]:
        """Run ``operation`` for each package.

        Returns:
            Results in the order of ``packages``.

        Raises:
            TaskBatchFailed: After all tasks settle, if any of them raised.
        """
        by_key = {}
        for wave in self._waves(list(packages)):
            semaphore = asyncio.Semaphore(self.policy.max_workers) if self.policy.max_workers else None
            settled = await asyncio.gather(*(self._run_one(pkg, operation, semaphore) for pkg in wave))
            for result in settled:
                by_key[result.package.primary_key] = result

        results = [by_key[pkg.primary_key] for pkg in packages]
        if any(not r.ok for r in results):
            raise TaskBatchFailed(results)
        return results
