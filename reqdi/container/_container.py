from __future__ import annotations

import inspect
import logging
from typing import Any, Dict, List, NamedTuple, Tuple

from reqdi._utils.inspect import get_parameters
from reqdi._utils.topsort import dependency_order
from reqdi.api.providers import DependencyProvider
from reqdi.api.wrappers import DependencyWrapper
from reqdi.context import ResolutionContext
from reqdi.exceptions import ContainerFrozenError, UnknownDependencyError
from reqdi.wrappers import wrap_dependency

logger = logging.getLogger(__name__)


class Registration(NamedTuple):
    name: str
    factory: DependencyProvider
    parameters: Dict[str, inspect.Parameter]


class Container:
    """Name -> factory registry shared by every request of an application.

    Registrations happen at startup. The first request freezes the container,
    after which it is only ever read.

    The wrapper strategy is picked from the factory:
    - a generator (sync or async) acquires, yields the resource and releases it afterwards
    - a factory returning `(resource, cleanup)` is released by calling `cleanup`
    - anything else is a plain value

    Factory parameters are filled by name from the resolution context
    (`input`, `request`, `task`, `container`) or else from other registrations.
    """

    __slots__ = ("_registrations", "_frozen")

    _registrations: Dict[str, Registration]

    def __init__(self) -> None:
        self._registrations = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._registrations)

    def register(self, name: str, factory: DependencyProvider) -> None:
        if self._frozen:
            raise ContainerFrozenError(
                f"Cannot register {name!r}: the container is frozen once requests are being served"
            )
        if not callable(factory):
            raise TypeError(f"Dependency factory for {name!r} must be callable, got {factory!r}")
        if name in self._registrations:
            logger.debug("Replacing registration for %r", name)
        self._registrations[name] = Registration(name, factory, get_parameters(factory))

    def __contains__(self, name: object) -> bool:
        return name in self._registrations

    def get(self, name: str) -> Registration:
        try:
            return self._registrations[name]
        except KeyError:
            raise UnknownDependencyError(name) from None

    def dependencies_of(self, name: str) -> List[str]:
        """Other registrations that `name`'s factory receives by parameter name"""
        registration = self.get(name)
        return [
            param
            for param in registration.parameters
            if param not in ResolutionContext.NAMES
            and param != name
            and param in self._registrations
        ]

    def freeze(self) -> None:
        """Stop accepting registrations and check that registrations do not form a cycle"""
        if self._frozen:
            return
        order = dependency_order({name: self.dependencies_of(name) for name in self._registrations})
        logger.debug("Container frozen, registrations in dependency order: %s", order)
        self._frozen = True

    async def resolve(self, name: str, *args: Any, **kwargs: Any) -> DependencyWrapper:
        """Build a fresh wrapper for the registration `name`.

        The container never caches: every call produces a new wrapper, request
        scoping is up to the caller.
        """
        return await wrap_dependency(self.get(name).factory, *args, **kwargs)
