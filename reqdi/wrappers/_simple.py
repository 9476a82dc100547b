from typing import Any


class SimpleDependency:
    """A plain value with nothing to release"""

    __slots__ = ("resource",)

    def __init__(self, resource: Any) -> None:
        self.resource = resource

    async def call(self) -> Any:
        return self.resource

    async def cleanup(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(resource={self.resource!r})"
