"""Field coercions applied to decoded JSON-RPC messages.

A coercion names a field path and the JSON type the downstream schema
expects there. Today there is exactly one: the JSON-RPC `id`, which some
servers send as a number and strict clients insist is a string.
"""

import json
from dataclasses import dataclass
from typing import Any


def to_string(value: Any) -> str:
    """String form of a JSON value.

    Strings come back untouched (no extra quoting), so applying this twice
    is the same as applying it once. Numbers become their canonical decimal
    text, so integral floats lose the fraction: 1 -> "1", 1e2 -> "100",
    1.0 -> "1", 1.5 -> "1.5". Anything else becomes compact JSON text.

    Raises:
        ValueError: NaN or infinity, which have no JSON form
    """
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


_CONVERTERS = {
    str: to_string,
}


@dataclass(frozen=True)
class Coercion:
    """Coerce the value at `path` to `target`, if present and not null."""

    path: tuple[str, ...]
    target: type = str

    def __post_init__(self):
        if not self.path:
            raise ValueError("Coercion path must not be empty")
        if self.target not in _CONVERTERS:
            raise ValueError(f"Unsupported coercion target: {self.target.__name__}")

    def apply(self, document: Any) -> bool:
        """Coerce in place. Returns True if the value changed."""
        parent = document
        for key in self.path[:-1]:
            if not isinstance(parent, dict):
                return False
            parent = parent.get(key)

        if not isinstance(parent, dict):
            return False

        key = self.path[-1]
        value = parent.get(key)
        if value is None:
            return False

        converted = _CONVERTERS[self.target](value)
        if converted == value and type(converted) is type(value):
            return False

        parent[key] = converted
        return True


DEFAULT_COERCIONS: tuple[Coercion, ...] = (
    Coercion(("id",), str),
)


def apply_coercions(document: Any, coercions: tuple[Coercion, ...] = DEFAULT_COERCIONS) -> int:
    """Apply coercions to a decoded message (or to each message of a batch).

    Returns the number of values that changed. Non-object documents are
    left alone.
    """
    if isinstance(document, list):
        return sum(
            apply_coercions(item, coercions) for item in document if isinstance(item, dict)
        )

    if not isinstance(document, dict):
        return 0

    return sum(1 for coercion in coercions if coercion.apply(document))
