"""Field-name translation between caller and wire naming conventions.

Callers write camelCase keys, the API expects snake_case. Translation is
applied to outgoing bodies and query records only; responses pass through
untouched.
"""

import re
from typing import Any

# Word breaks happen only before capitals; digits stay with their word
_ACRONYM_BOUNDARY_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")


def decamelize(name: str) -> str:
    """Convert a single camelCase field name to snake_case.

    >>> decamelize("sha256Sum")
    'sha256_sum'
    >>> decamelize("HTTPResponseCode")
    'http_response_code'
    """
    if not name:
        return name
    name = _ACRONYM_BOUNDARY_RE.sub(r"\1_\2", name)
    return _WORD_BOUNDARY_RE.sub(r"\1_\2", name).lower()


def decamelize_keys(value: Any) -> Any:
    """Recursively translate dict keys to snake_case.

    Lists and tuples are walked element by element; scalars are returned
    as-is. The input is never mutated.
    """
    if isinstance(value, dict):
        return {
            (decamelize(k) if isinstance(k, str) else k): decamelize_keys(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(decamelize_keys(item) for item in value)
    return value
