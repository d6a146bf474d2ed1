""" Placeholders in named query pipelines

A stored pipeline may contain placeholders: string values that are exactly `{{name}}`.
At execution time, they are replaced with parameter values, keeping their types:

    >>> substitute_parameters([{'$match': {'qty': '{{qty}}'}}], {'qty': 3})
    [{'$match': {'qty': 3}}]

A string that merely contains a placeholder (`"id-{{id}}"`) is not a placeholder.
Object keys are never substituted.
"""

import re
from copy import deepcopy

from ..exc import UnresolvedPlaceholderError


PLACEHOLDER_RX = re.compile(r'\{\{\s*(\w+)\s*\}\}')


def placeholder_name(value):
    """ Get the name of the placeholder, if the value is one; otherwise, `None` """
    if not isinstance(value, str):
        return None
    m = PLACEHOLDER_RX.fullmatch(value)
    return m.group(1) if m else None


def find_placeholders(template) -> set:
    """ Get the names of all placeholders in a template """
    if isinstance(template, dict):
        return set().union(*(find_placeholders(v) for v in template.values()))
    elif isinstance(template, list):
        return set().union(*(find_placeholders(v) for v in template))
    else:
        name = placeholder_name(template)
        return {name} if name is not None else set()


def substitute_parameters(template, params: dict, lenient: bool = True):
    """ Replace placeholders in a template with parameter values

    The template is never modified: a copy is made.

    :param template: The pipeline, or any JSON value
    :param params: {name: value}. A `None` value is a value, too
    :param lenient: Leave placeholders without a parameter as they are.
        When `False`, raise UnresolvedPlaceholderError
    :raises UnresolvedPlaceholderError: no parameter for a placeholder (strict mode only)
    """
    return _substitute(deepcopy(template), params or {}, lenient)


def _substitute(value, params, lenient):
    # Works on a copy, in place
    if isinstance(value, dict):
        for key, item in value.items():
            value[key] = _substitute(item, params, lenient)
        return value
    elif isinstance(value, list):
        for i, item in enumerate(value):
            value[i] = _substitute(item, params, lenient)
        return value

    name = placeholder_name(value)
    if name is None:
        return value
    elif name in params:
        return deepcopy(params[name])  # a param used twice must not become a shared object
    elif lenient:
        return value
    else:
        raise UnresolvedPlaceholderError(name)
