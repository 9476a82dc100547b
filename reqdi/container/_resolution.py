from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from starlette.exceptions import HTTPException

from reqdi._utils.inspect import accepts_var_keyword, is_required
from reqdi._utils.types import Some
from reqdi.api.wrappers import DependencyWrapper
from reqdi.container._state import Cleanup, RequestState, Resolved, compose_cleanups
from reqdi.context import ResolutionContext
from reqdi.depends import ContainerRef, DependencyDeclaration, Depends, InlineDepends
from reqdi.exceptions import (
    DependencyInjectionException,
    MissingDependencyError,
    ResolutionError,
)
from reqdi.wrappers import SimpleDependency, wrap_dependency

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Optional[Some[Any]]]


async def resolve(
    dependency: Any,
    context: ResolutionContext,
    state: RequestState,
) -> Resolved:
    """Resolve a single dependency, memoized in `state.cache`.

    Sub-dependencies are resolved before the dependency that consumes them.
    Every releasable resource is registered in `state.cleanups` as soon as it
    is produced, so the registry ends up in resolution order. The returned
    cleanup releases this node's sub-dependencies first, then the node itself.
    """
    if isinstance(dependency, InlineDepends):
        dependency = dependency.descriptor
    if isinstance(dependency, ContainerRef):
        return await _resolve_container_ref(dependency, context, state)
    if isinstance(dependency, Depends):
        return await _resolve_depends(dependency, context, state)
    # literal
    return Resolved(dependency, None)


async def resolve_all(
    declarations: Mapping[str, DependencyDeclaration],
    context: ResolutionContext,
    state: RequestState,
) -> Dict[str, Any]:
    """Resolve a route's declarations in declared order, returning values by name"""
    values: Dict[str, Any] = {}
    for name, declaration in declarations.items():
        try:
            resolved = await resolve(declaration, context, state)
        except (HTTPException, DependencyInjectionException):
            raise
        except Exception as e:
            raise ResolutionError(
                f"Failed to resolve {name!r}: {e!r}", declaration
            ) from e
        values[name] = resolved.value
    return values


async def _resolve_depends(
    dependency: Depends,
    context: ResolutionContext,
    state: RequestState,
) -> Resolved:
    cache_key = dependency.cache_key
    if dependency.use_cache and cache_key in state.cache:
        return state.cache[cache_key]

    sub_values: Dict[str, Any] = {}
    sub_cleanups: List[Optional[Cleanup]] = []
    for name, sub_dependency in dependency.sub_dependencies.items():
        sub = await resolve(sub_dependency, context, state)
        sub_values[name] = sub.value
        sub_cleanups.append(sub.cleanup)

    def lookup(name: str) -> Optional[Some[Any]]:
        if name in sub_values:
            return Some(sub_values[name])
        return context.lookup(name)

    args, kwargs = _bind(dependency.parameters, lookup, dependency)
    if accepts_var_keyword(dependency.call):
        for name, value in sub_values.items():
            if name not in dependency.parameters:
                kwargs[name] = value

    value, own_cleanup = await _produce(
        functools.partial(wrap_dependency, dependency.call, *args, **kwargs), dependency, state
    )
    resolved = Resolved(value, compose_cleanups([*sub_cleanups, own_cleanup], dependency))
    if dependency.use_cache:
        state.cache[cache_key] = resolved
    return resolved


async def _resolve_container_ref(
    ref: ContainerRef,
    context: ResolutionContext,
    state: RequestState,
) -> Resolved:
    cache_key = ref.cache_key
    if cache_key in state.cache:
        return state.cache[cache_key]
    container = context.container
    if container is None:
        raise ResolutionError(
            f"Cannot resolve {ref!r} without a container in the resolution context", ref
        )
    registration = container.get(ref.key)

    # factories receive context values first, then other registrations by name
    sub_cleanups: List[Optional[Cleanup]] = []
    sub_values: Dict[str, Any] = {}
    for name in registration.parameters:
        if name in context or name == ref.key or name not in container:
            continue
        sub = await _resolve_container_ref(ContainerRef(name), context, state)
        sub_values[name] = sub.value
        sub_cleanups.append(sub.cleanup)

    def lookup(name: str) -> Optional[Some[Any]]:
        found = context.lookup(name)
        if found is not None:
            return found
        if name in sub_values:
            return Some(sub_values[name])
        return None

    args, kwargs = _bind(registration.parameters, lookup, ref)
    # the container hands out a fresh wrapper, request scoping is done by state.cache
    value, own_cleanup = await _produce(
        functools.partial(container.resolve, ref.key, *args, **kwargs), ref, state
    )
    resolved = Resolved(value, compose_cleanups([*sub_cleanups, own_cleanup], ref))
    state.cache[cache_key] = resolved
    return resolved


def _bind(
    parameters: Mapping[str, inspect.Parameter],
    lookup: Lookup,
    dependency: Any,
) -> Tuple[List[Any], Dict[str, Any]]:
    args: List[Any] = []
    kwargs: Dict[str, Any] = {}
    # positional-only parameters skipped because of a default, waiting for a later match
    skipped: List[inspect.Parameter] = []
    for name, param in parameters.items():
        found = lookup(name)
        if found is None:
            if is_required(param):
                raise MissingDependencyError(name, dependency)
            if param.kind is param.POSITIONAL_ONLY:
                skipped.append(param)
            continue
        if param.kind is param.POSITIONAL_ONLY:
            args.extend(p.default for p in skipped)
            skipped.clear()
            args.append(found.value)
        else:
            kwargs[name] = found.value
    return args, kwargs


async def _produce(
    build: Callable[[], Awaitable[DependencyWrapper]],
    dependency: Any,
    state: RequestState,
) -> Tuple[Any, Optional[Cleanup]]:
    try:
        wrapper = await build()
        value = await wrapper.call()
    except (HTTPException, DependencyInjectionException):
        raise
    except Exception as e:
        raise ResolutionError(f"{dependency!r} raised {e!r}", dependency) from e
    if isinstance(wrapper, SimpleDependency):
        return value, None
    logger.debug("Registered cleanup for %r", dependency)
    return value, state.cleanups.register(wrapper.cleanup, dependency)
