from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Union

from reqdi._utils.inspect import unwrap_callable
from reqdi.api.dependencies import CacheKey
from reqdi.depends._depends import ContainerRef, Depends
from reqdi.exceptions import WiringError


class InlineDepends:
    """A route-level declaration backed by a `Depends` defined at the route"""

    __slots__ = ("descriptor",)

    descriptor: Depends

    def __init__(self, descriptor: Depends) -> None:
        self.descriptor = descriptor

    @property
    def cache_key(self) -> CacheKey:
        return self.descriptor.cache_key

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.descriptor!r})"


DependencyDeclaration = Union[ContainerRef, InlineDepends]


def normalize_declarations(depends: Any) -> Dict[str, DependencyDeclaration]:
    """Turn whatever a route author passed as `depends=` into named declarations.

    Accepted forms:
    - `None`: no dependencies
    - `"db"` or `["db", "cache"]`: container entries, injected under the same name
    - `{"name": value}` where value is `None` (container entry `name`),
      a container name, a `ContainerRef`, a `Depends` or a plain callable
    - a single `Depends`, injected under its callable's name

    This runs once, when the route is registered.
    """
    if depends is None:
        return {}
    if isinstance(depends, (str, ContainerRef)):
        depends = [depends]
    if isinstance(depends, Depends):
        return {_name_of(depends): InlineDepends(depends)}
    if isinstance(depends, Mapping):
        return {
            _check_name(name): _normalize_entry(name, value)
            for name, value in depends.items()
        }
    if isinstance(depends, Iterable):
        declarations: Dict[str, DependencyDeclaration] = {}
        for item in depends:
            if isinstance(item, str):
                declarations[_check_name(item)] = ContainerRef(item)
            elif isinstance(item, ContainerRef):
                declarations[_check_name(item.key)] = item
            else:
                raise WiringError(
                    f"Dependencies given as a list must be container names, got {item!r}"
                )
        return declarations
    raise WiringError(f"Cannot interpret {depends!r} as a set of dependencies")


def _normalize_entry(name: str, value: Any) -> DependencyDeclaration:
    if value is None:
        return ContainerRef(name)
    if isinstance(value, str):
        return ContainerRef(value)
    if isinstance(value, (ContainerRef, InlineDepends)):
        return value
    if isinstance(value, Depends):
        return InlineDepends(value)
    if callable(value):
        return InlineDepends(Depends(value))
    raise WiringError(
        f"Dependency {name!r} must be a container name, a Depends or a callable, got {value!r}"
    )


def _check_name(name: Any) -> str:
    if not isinstance(name, str) or not name.isidentifier():
        raise WiringError(f"Dependency names must be valid identifiers, got {name!r}")
    return name


def _name_of(descriptor: Depends) -> str:
    name = getattr(unwrap_callable(descriptor.call), "__name__", None)
    if name is None or name == "<lambda>":
        raise WiringError(
            f"Cannot infer a name for {descriptor!r}, declare it as {{'name': descriptor}} instead"
        )
    return name
