from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence

from reqdi._utils.concurrency import call_maybe_async
from reqdi._utils.types import CacheKey
from reqdi.api.providers import CleanupCallable
from reqdi.exceptions import CleanupError

logger = logging.getLogger(__name__)


class Cleanup:
    """A zero argument release action that runs at most once.

    The same `Cleanup` can be reachable from the registry and from any number
    of composed cleanups; only the first invocation does anything.
    """

    __slots__ = ("action", "label", "done")

    def __init__(self, action: CleanupCallable, label: Any = None) -> None:
        self.action = action
        self.label = label
        self.done = False

    async def __call__(self) -> None:
        if self.done:
            return
        self.done = True
        await call_maybe_async(self.action)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(label={self.label!r}, done={self.done})"


def compose_cleanups(cleanups: Sequence[Optional[Cleanup]], label: Any = None) -> Optional[Cleanup]:
    """Run `cleanups` in order as a single cleanup.

    Every part is attempted; the first error is re-raised once all have run.
    """
    parts = [c for c in cleanups if c is not None]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]

    async def run_all() -> None:
        first_error: Optional[BaseException] = None
        for part in parts:
            try:
                await part()
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    return Cleanup(run_all, label)


class CleanupRegistry:
    """Release actions for one request, in the order their resources were resolved.

    Draining runs every action even if some of them fail:
    failures are logged and returned, never raised.
    """

    __slots__ = ("_cleanups",)

    _cleanups: List[Cleanup]

    def __init__(self) -> None:
        self._cleanups = []

    def register(self, action: CleanupCallable, label: Any = None) -> Cleanup:
        cleanup = action if isinstance(action, Cleanup) else Cleanup(action, label)
        self._cleanups.append(cleanup)
        return cleanup

    def __len__(self) -> int:
        return len(self._cleanups)

    def __iter__(self) -> Iterator[Cleanup]:
        return iter(self._cleanups)

    async def drain(self) -> List[CleanupError]:
        cleanups, self._cleanups = self._cleanups, []
        errors: List[CleanupError] = []
        for cleanup in cleanups:
            try:
                await cleanup()
            except Exception as e:
                logger.warning("Cleanup for %r failed", cleanup.label, exc_info=e)
                error = CleanupError(f"Cleanup for {cleanup.label!r} failed: {e!r}", cleanup)
                error.__cause__ = e
                errors.append(error)
        return errors


class Resolved(NamedTuple):
    value: Any
    cleanup: Optional[Cleanup]


class RequestState:
    """Everything the resolver owns for a single request"""

    __slots__ = ("cache", "cleanups")

    cache: Dict[CacheKey, Resolved]
    cleanups: CleanupRegistry

    def __init__(
        self,
        cache: Optional[Dict[CacheKey, Resolved]] = None,
        cleanups: Optional[CleanupRegistry] = None,
    ) -> None:
        self.cache = {} if cache is None else cache
        self.cleanups = CleanupRegistry() if cleanups is None else cleanups
