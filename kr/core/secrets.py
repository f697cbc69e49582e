"""Opaque handle for secret values (signing key, key password).

A `Secret` never renders its value: `repr`, `str` and f-strings show a mask,
and it refuses to be pickled or copied so it cannot leak into a report,
a cache file or a worker payload by accident. The value is only reachable
through `reveal()`, called at the single place that hands it to a child
process.
"""

from __future__ import annotations

from typing import NoReturn

__all__ = ["Secret"]

_MASK = "Secret(********)"


class Secret:
    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = value

    def reveal(self) -> str:
        return self._value

    def is_empty(self) -> bool:
        return not self._value

    def __repr__(self) -> str:
        return _MASK

    def __str__(self) -> str:
        return _MASK

    def __format__(self, format_spec: str) -> str:
        return _MASK

    def __reduce__(self) -> NoReturn:
        raise TypeError("Secret values cannot be serialized")

    def __copy__(self) -> NoReturn:
        raise TypeError("Secret values cannot be copied")

    def __deepcopy__(self, memo: object) -> NoReturn:
        raise TypeError("Secret values cannot be copied")
