from typing import Any, Optional

from reqdi._utils.concurrency import call_maybe_async
from reqdi.api.providers import CleanupCallable


class ManagedDependency:
    """A resource paired with the callable that releases it.

    Built from a factory that returned `(resource, cleanup)`.
    The cleanup callable may be sync or async and runs at most once.
    """

    __slots__ = ("resource", "cleanup_callable")

    cleanup_callable: Optional[CleanupCallable]

    def __init__(self, resource: Any, cleanup_callable: Optional[CleanupCallable]) -> None:
        self.resource = resource
        self.cleanup_callable = cleanup_callable

    async def call(self) -> Any:
        return self.resource

    async def cleanup(self) -> None:
        cleanup_callable, self.cleanup_callable = self.cleanup_callable, None
        if cleanup_callable is not None:
            await call_maybe_async(cleanup_callable)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(resource={self.resource!r})"
