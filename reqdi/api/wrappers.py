from typing import Any, Protocol


class DependencyWrapper(Protocol):
    """Produces a single resource and optionally releases it.

    `call()` may be awaited any number of times and returns the same value.
    `cleanup()` releases the resource; the wrapper is not reused afterwards.
    """

    async def call(self) -> Any:
        ...

    async def cleanup(self) -> None:
        ...
