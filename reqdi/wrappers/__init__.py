from reqdi.wrappers._factory import is_managed_result, wrap_dependency
from reqdi.wrappers._generator import GeneratorDependency, GeneratorState
from reqdi.wrappers._managed import ManagedDependency
from reqdi.wrappers._simple import SimpleDependency

__all__ = (
    "GeneratorDependency",
    "GeneratorState",
    "ManagedDependency",
    "SimpleDependency",
    "is_managed_result",
    "wrap_dependency",
)
