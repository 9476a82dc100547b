from typing import Any, Callable

from reqdi._utils.concurrency import call_maybe_async
from reqdi._utils.inspect import is_generator_factory
from reqdi.api.wrappers import DependencyWrapper
from reqdi.wrappers._generator import GeneratorDependency
from reqdi.wrappers._managed import ManagedDependency
from reqdi.wrappers._simple import SimpleDependency


def is_managed_result(value: Any) -> bool:
    """`(resource, cleanup)` pairs are the only results that carry their own release"""
    return isinstance(value, tuple) and len(value) == 2 and callable(value[1])


async def wrap_dependency(
    factory: Callable[..., Any], *args: Any, **kwargs: Any
) -> DependencyWrapper:
    """Pick the wrapper strategy for `factory` and build a fresh wrapper.

    Generator factories are not started until `call()` is awaited.
    Any other factory is invoked right away (awaiting it if it is async)
    and the shape of its result decides between a managed and a simple wrapper.
    """
    if is_generator_factory(factory):
        return GeneratorDependency(factory, *args, **kwargs)
    result = await call_maybe_async(factory, *args, **kwargs)
    if is_managed_result(result):
        resource, cleanup = result
        return ManagedDependency(resource, cleanup)
    return SimpleDependency(result)
