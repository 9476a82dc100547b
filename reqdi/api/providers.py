from typing import (
    Any,
    AsyncGenerator,
    Awaitable,
    Callable,
    Coroutine,
    Generator,
    TypeVar,
    Union,
)

T = TypeVar("T")

CallableProvider = Callable[..., T]
CoroutineProvider = Callable[..., Coroutine[Any, Any, T]]
GeneratorProvider = Callable[..., Generator[T, None, None]]
AsyncGeneratorProvider = Callable[..., AsyncGenerator[T, None]]

# a zero argument callable, sync or async
CleanupCallable = Union[Callable[[], Any], Callable[[], Awaitable[Any]]]

DependencyProvider = Union[
    AsyncGeneratorProvider[Any],
    CoroutineProvider[Any],
    GeneratorProvider[Any],
    CallableProvider[Any],
]
