from __future__ import annotations

import logging
import sys
from typing import Any, Callable, List, NamedTuple, Tuple, TypeVar

if sys.version_info < (3, 10):  # pragma: no cover
    from typing_extensions import ParamSpec
else:  # pragma: no cover
    from typing import ParamSpec

from reqdi._utils.concurrency import call_maybe_async
from reqdi.exceptions import BackgroundTaskError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class QueuedTask(NamedTuple):
    func: Callable[..., Any]
    args: Tuple[Any, ...]
    kwargs: Any


class BackgroundTasks:
    """Work to run after the handler returns, while dependencies are still open.

    A handler declaring a `background` parameter receives a fresh, empty queue.
    Tasks run in the order they were added, once the response payload is computed
    and before any dependency is released, so a task may use resolved resources.
    A failing task is logged and never affects the response or the tasks after it.
    """

    __slots__ = ("_tasks", "_drained")

    _tasks: List[QueuedTask]

    def __init__(self) -> None:
        self._tasks = []
        self._drained = False

    def add_task(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> None:
        if self._drained:
            raise RuntimeError("Background tasks were already run for this request")
        self._tasks.append(QueuedTask(func, args, kwargs))

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def drained(self) -> bool:
        return self._drained

    async def drain(self) -> List[BackgroundTaskError]:
        if self._drained:
            return []
        self._drained = True
        tasks, self._tasks = self._tasks, []
        errors: List[BackgroundTaskError] = []
        for task in tasks:
            try:
                await call_maybe_async(task.func, *task.args, **task.kwargs)
            except Exception as e:
                logger.error("Background task %r failed", task.func, exc_info=e)
                error = BackgroundTaskError(
                    f"Background task {task.func!r} failed: {e!r}", task.func
                )
                error.__cause__ = e
                errors.append(error)
        return errors
