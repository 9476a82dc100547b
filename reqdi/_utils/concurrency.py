import inspect
from typing import Any, Callable


async def call_maybe_async(call: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Call a sync or async callable and await the result if it is awaitable.

    Sync callables run inline, in the calling task.
    """
    result = call(*args, **kwargs)
    if inspect.isawaitable(result):
        return await result
    return result
