"""Validation package."""

from ledger.validation.validator import (
    Validator,
    email,
    equal,
    hex_color,
    in_int64,
    matches,
    max_length,
    min_length,
    non_zero,
    permitted_value,
    unique,
)

__all__ = [
    "Validator",
    "email",
    "equal",
    "hex_color",
    "in_int64",
    "matches",
    "max_length",
    "min_length",
    "non_zero",
    "permitted_value",
    "unique",
]
