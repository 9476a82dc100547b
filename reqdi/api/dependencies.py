import inspect
from typing import Any, Dict, Mapping, Optional

from reqdi._utils.types import CacheKey
from reqdi.api.providers import DependencyProvider

__all__ = ("CacheKey", "DependencyBase")


class DependencyBase:
    """Something the resolver knows how to produce a value for.

    Subclasses provide:
    - A cache key, to deduplicate resolution within a request
    - The callable that produces the value (if any)
    - The parameters of that callable, computed once
    - Named sub-dependencies, resolved before the callable is invoked
    """

    call: Optional[DependencyProvider]
    use_cache: bool

    @property
    def cache_key(self) -> CacheKey:
        raise NotImplementedError

    @property
    def parameters(self) -> Dict[str, inspect.Parameter]:
        raise NotImplementedError

    @property
    def sub_dependencies(self) -> Mapping[str, Any]:
        raise NotImplementedError
