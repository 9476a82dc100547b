from __future__ import annotations

import inspect
from types import MappingProxyType
from typing import Any, Dict, Mapping

from reqdi._utils.inspect import get_parameters
from reqdi.api.dependencies import CacheKey, DependencyBase
from reqdi.api.providers import DependencyProvider


class ContainerRef:
    """Resolve a value by name from the application's Container.

    Two references to the same name are the same dependency:
    within a request the registration is resolved once and shared.
    """

    __slots__ = ("key",)

    key: str

    def __init__(self, key: str) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Container keys must be strings, got {key!r}")
        self.key = key

    @property
    def cache_key(self) -> CacheKey:
        return (ContainerRef, self.key)

    def __eq__(self, o: object) -> bool:
        return isinstance(o, ContainerRef) and o.key == self.key

    def __hash__(self) -> int:
        return hash((ContainerRef, self.key))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.key!r})"


class Depends(DependencyBase):
    """Describe how to obtain a value by calling `call`.

    Keyword arguments are named sub-dependencies. Each one is either:
    - another `Depends` (resolved first, recursively)
    - a `ContainerRef` (looked up in the Container)
    - a plain callable (wrapped in a `Depends` once, here)
    - anything else, passed through unchanged as a literal

    ```py
    def get_user(db: Database, request: Request) -> User:
        ...

    current_user = Depends(get_user, db=ContainerRef("db"))
    ```

    Parameters of `call` that are not sub-dependencies are filled from the
    resolution context by name (`input`, `request`, `task`, `container`).

    A `Depends` is immutable and is meant to be declared once and reused across requests.
    Within a request it is resolved at most once, keyed by its identity.
    Pass `use_cache=False` to get a fresh value every time it is referenced.
    """

    __slots__ = ("call", "use_cache", "_sub_dependencies", "_parameters")

    call: DependencyProvider
    use_cache: bool

    def __init__(
        self,
        call: DependencyProvider,
        /,
        *,
        use_cache: bool = True,
        **sub_dependencies: Any,
    ) -> None:
        if not callable(call):
            raise TypeError(f"Dependency must be callable, got {call!r}")
        self.call = call
        self.use_cache = use_cache
        self._sub_dependencies: Mapping[str, Any] = MappingProxyType(
            {
                name: _as_sub_dependency(value)
                for name, value in sub_dependencies.items()
            }
        )
        self._parameters = get_parameters(call)

    @property
    def cache_key(self) -> CacheKey:
        return (Depends, id(self))

    @property
    def parameters(self) -> Dict[str, inspect.Parameter]:
        return self._parameters

    @property
    def sub_dependencies(self) -> Mapping[str, Any]:
        return self._sub_dependencies

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(call={self.call!r}, use_cache={self.use_cache})"


def _as_sub_dependency(value: Any) -> Any:
    if isinstance(value, (Depends, ContainerRef)):
        return value
    if callable(value):
        return Depends(value)
    return value
