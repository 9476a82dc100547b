import functools
import inspect
from typing import Any, Callable, Dict, Mapping

_NAMED_PARAMETER_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
    inspect.Parameter.KEYWORD_ONLY,
)


def unwrap_callable(call: Any) -> Any:
    unwrapped = True
    while unwrapped:
        unwrapped = False
        if isinstance(call, functools.partial):
            call = call.func
            unwrapped = True
            continue
        if getattr(call, "__wrapped__", None):
            # maybe function wrapped with @wraps
            call = getattr(call, "__wrapped__")
            unwrapped = True
            continue
    return call


def is_async_gen_callable(call: Callable[..., Any]) -> bool:
    unwrapped_call = unwrap_callable(call)
    if inspect.isasyncgenfunction(unwrapped_call):
        return True
    dunder_call = getattr(unwrapped_call, "__call__", None)
    return inspect.isasyncgenfunction(dunder_call)


def is_gen_callable(call: Any) -> bool:
    if inspect.isclass(call):
        return False
    unwrapped_call = unwrap_callable(call)
    if inspect.isgeneratorfunction(unwrapped_call):
        return True
    dunder_call = getattr(unwrapped_call, "__call__", None)
    return inspect.isgeneratorfunction(dunder_call)


def is_generator_factory(call: Any) -> bool:
    """True for factories that acquire, yield one resource and release it afterwards"""
    if inspect.isclass(call):
        return False
    return is_async_gen_callable(call) or is_gen_callable(call)


def get_parameters(call: Callable[..., Any]) -> Dict[str, inspect.Parameter]:
    """Named parameters of `call`, in declaration order.

    Variadic parameters are left out since they can never be matched by name.
    Callables without an introspectable signature (some builtins) have no parameters.
    """
    params: Mapping[str, inspect.Parameter]
    try:
        params = inspect.signature(call).parameters
    except (TypeError, ValueError):
        return {}
    return {
        name: param
        for name, param in params.items()
        if param.kind in _NAMED_PARAMETER_KINDS
    }


def accepts_var_keyword(call: Callable[..., Any]) -> bool:
    try:
        params = inspect.signature(call).parameters
    except (TypeError, ValueError):
        return False
    return any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values())


def is_required(param: inspect.Parameter) -> bool:
    return param.default is param.empty
