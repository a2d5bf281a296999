"""
Field Validation

A Validator collects every rule violation for a request before anything
touches the store, so the caller can report all of them at once:

    v = Validator()
    v.check(non_zero(name), "name", "Must be provided")
    v.check(max_length(name, 20), "name", "Must not be more than 20 bytes long")
    v.raise_if_invalid()

The predicates are pure and total: they accept any input, never raise,
and never perform I/O.
"""

import re
from typing import Any, Hashable, Iterable

from ledger.errors import ValidationFailedError


# from https://html.spec.whatwg.org/#valid-e-mail-address
EMAIL_RX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
HEX_COLOR_RX = re.compile(r"^#([a-fA-F0-9]{6}|[a-fA-F0-9]{3})$")

# bounds of the BIGINT money columns
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class Validator:
    """Accumulates field -> message errors without short-circuiting."""

    def __init__(self):
        self.errors: dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        # First message recorded for a field wins.
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def get_errors(self) -> ValidationFailedError:
        return ValidationFailedError(self.errors)

    def raise_if_invalid(self) -> None:
        if not self.valid():
            raise self.get_errors()


def _byte_length(value: Any) -> int:
    if isinstance(value, bytes):
        return len(value)
    if value is None:
        return 0
    return len(str(value).encode("utf-8"))


def non_zero(value: Any) -> bool:
    """True unless value is None or the zero value of its type ("", 0, False, empty)."""
    if value is None:
        return False
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value) > 0
    return bool(value)


def max_length(value: Any, size: int) -> bool:
    """Length in UTF-8 bytes is at most `size`."""
    return _byte_length(value) <= size


def min_length(value: Any, size: int) -> bool:
    """Length in UTF-8 bytes is at least `size`."""
    return _byte_length(value) >= size


def permitted_value(value: Any, *permitted: Any) -> bool:
    try:
        return value in permitted
    except TypeError:
        return False


def matches(value: Any, rx: re.Pattern) -> bool:
    if not isinstance(value, str):
        return False
    return rx.fullmatch(value) is not None


def hex_color(value: Any) -> bool:
    return matches(value, HEX_COLOR_RX)


def email(value: Any) -> bool:
    return matches(value, EMAIL_RX)


def in_int64(value: Any) -> bool:
    """Value is an int that fits a signed 64-bit column."""
    return isinstance(value, int) and INT64_MIN <= value <= INT64_MAX


def unique(values: Iterable[Hashable]) -> bool:
    seen = set()
    for value in values:
        if value in seen:
            return False
        seen.add(value)
    return True


def equal(value: Any, other: Any) -> bool:
    return value == other
