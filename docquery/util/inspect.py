import inspect
from functools import lru_cache
from typing import Callable, Mapping, Tuple


@lru_cache(100)
def get_function_defaults(for_func: Callable) -> dict:
    """ Get a dict of the keyword arguments of a function that have default values

        This is how a handler's `__init__()` declares the settings it accepts.
    """
    signature = inspect.signature(for_func)

    return {name: param.default
            for name, param in signature.parameters.items()
            if param.default is not inspect.Parameter.empty
            and param.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)}


def pluck_kwargs_from(dct: Mapping, for_func: Callable, skip: Tuple[str] = ()) -> dict:
    """ Analyze a function, pluck the arguments it needs from a dict

        Missing keys get the function's own default values.
    """
    defaults = get_function_defaults(for_func)

    return {k: dct.get(k, defaults[k])
            for k in defaults.keys()
            if k not in skip}
