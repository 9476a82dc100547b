from __future__ import annotations

import enum
import inspect
from typing import Any, AsyncGenerator, Callable, Generator, Union

from reqdi._utils.inspect import is_async_gen_callable

_UNSET: Any = object()


class GeneratorState(enum.Enum):
    PENDING = "pending"
    PROVIDED = "provided"
    RELEASED = "released"


class GeneratorDependency:
    """A resource acquired and released by a single generator.

    ```py
    def get_connection() -> Generator[Connection, None, None]:
        conn = connect()
        try:
            yield conn
        finally:
            conn.close()
    ```

    The generator is parked at its `yield` between `call()` and `cleanup()`,
    so the release code runs exactly once and sees whatever the acquire code opened.
    Both sync and async generators are supported.
    """

    __slots__ = ("factory", "args", "kwargs", "state", "_gen", "_value")

    _gen: Union[Generator[Any, None, None], AsyncGenerator[Any, None], None]

    def __init__(self, factory: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self.factory = factory
        self.args = args
        self.kwargs = kwargs
        self.state = GeneratorState.PENDING
        self._gen = None
        self._value = _UNSET

    async def call(self) -> Any:
        if self.state is GeneratorState.PROVIDED:
            return self._value
        if self.state is GeneratorState.RELEASED:
            raise RuntimeError(f"{self!r} was already released")
        # whatever happens below, acquisition is never attempted twice
        self.state = GeneratorState.RELEASED
        if is_async_gen_callable(self.factory):
            agen = self.factory(*self.args, **self.kwargs)
            try:
                value = await agen.__anext__()
            except StopAsyncIteration:
                raise RuntimeError(f"{self.factory!r} did not yield a value") from None
            self._gen = agen
        else:
            gen = self.factory(*self.args, **self.kwargs)
            try:
                value = next(gen)
            except StopIteration:
                raise RuntimeError(f"{self.factory!r} did not yield a value") from None
            self._gen = gen
        self._value = value
        self.state = GeneratorState.PROVIDED
        return value

    async def cleanup(self) -> None:
        if self.state is not GeneratorState.PROVIDED:
            return
        self.state = GeneratorState.RELEASED
        gen, self._gen = self._gen, None
        if inspect.isgenerator(gen):
            try:
                next(gen)
            except StopIteration:
                return
            gen.close()
        else:
            assert gen is not None
            try:
                await gen.__anext__()
            except StopAsyncIteration:
                return
            await gen.aclose()
        raise RuntimeError(f"{self.factory!r} yielded more than once")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(factory={self.factory!r}, state={self.state.value})"
