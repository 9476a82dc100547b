from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Optional

from reqdi._utils.types import Some

if TYPE_CHECKING:  # pragma: no cover
    from anyio.abc import TaskGroup
    from starlette.requests import Request

    from reqdi.container import Container


class ResolutionContext:
    """Ambient values for one request, offered to dependency callables by parameter name.

    A callable declaring a parameter called `input`, `request`, `task` or `container`
    receives the matching value. `extra` holds any additional named values.
    """

    __slots__ = ("input", "request", "task", "container", "extra")

    NAMES = ("input", "request", "task", "container")

    input: Any
    request: Optional[Request]
    task: Optional[TaskGroup]
    container: Optional[Container]
    extra: Mapping[str, Any]

    def __init__(
        self,
        input: Any = None,
        request: Optional[Request] = None,
        task: Optional[TaskGroup] = None,
        container: Optional[Container] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.input = input
        self.request = request
        self.task = task
        self.container = container
        self.extra = MappingProxyType(dict(extra or {}))

    def lookup(self, name: str) -> Optional[Some[Any]]:
        if name in self.NAMES:
            return Some(getattr(self, name))
        if name in self.extra:
            return Some(self.extra[name])
        return None

    def __contains__(self, name: object) -> bool:
        return name in self.NAMES or name in self.extra

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(input={self.input!r}, request={self.request!r},"
            f" task={self.task!r}, container={self.container!r})"
        )
