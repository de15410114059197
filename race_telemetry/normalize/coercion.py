"""
Candidate-key coercion helpers.

The timing API names the same field differently across resources and API
versions. Every typed read goes through one of the ``*_from`` functions below
with an ordered tuple of candidate keys; the first key holding a usable value
wins. All functions are total: they return None instead of raising.
"""
import math
from collections.abc import Iterable, Mapping
from typing import Any, Optional

Number = int | float

TRUE_STRINGS = frozenset({"y", "yes", "true", "1"})
FALSE_STRINGS = frozenset({"n", "no", "false", "0"})


def _float_safe(value: int) -> Optional[int]:
    # Ints beyond float range cannot be rendered or averaged.
    try:
        float(value)
    except OverflowError:
        return None
    return value


def coerce_number(value: Any) -> Optional[Number]:
    """
    Interpret a single value as a finite number.

    Integral strings parse to int, other numeric strings to float.
    Booleans, blanks, NaN, infinities and ints too large for a float are
    rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _float_safe(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return None
        try:
            return _float_safe(int(text))
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def number_to_string(value: Number) -> str:
    """Render a number the way it reads in a key: ``44.0`` -> ``"44"``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_string(value: Any) -> Optional[str]:
    """Interpret a single value as a non-empty trimmed string."""
    if isinstance(value, str):
        text = value.strip()
        return text or None
    if isinstance(value, (int, float)):
        number = coerce_number(value)
        return number_to_string(number) if number is not None else None
    return None


def coerce_boolean(value: Any) -> Optional[bool]:
    """Interpret a single value as a boolean flag."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    return None


def _candidates(record: Any, keys: Iterable[str]) -> Iterable[Any]:
    if not isinstance(record, Mapping):
        return
    for key in keys:
        yield record.get(key)


def number_from(record: Any, keys: Iterable[str]) -> Optional[Number]:
    """Return the first candidate value that is a finite number."""
    for value in _candidates(record, keys):
        result = coerce_number(value)
        if result is not None:
            return result
    return None


def whole_number_from(record: Any, keys: Iterable[str]) -> Optional[int]:
    """Like number_from, but only integral values count (as int)."""
    for value in _candidates(record, keys):
        result = coerce_number(value)
        if result is None:
            continue
        if isinstance(result, int):
            return result
        if result.is_integer():
            return int(result)
    return None


def string_from(record: Any, keys: Iterable[str]) -> Optional[str]:
    """Return the first candidate value usable as a non-empty string."""
    for value in _candidates(record, keys):
        result = coerce_string(value)
        if result is not None:
            return result
    return None


def boolean_from(record: Any, keys: Iterable[str]) -> Optional[bool]:
    """Return the first candidate value interpretable as a boolean."""
    for value in _candidates(record, keys):
        result = coerce_boolean(value)
        if result is not None:
            return result
    return None


def numeric_or_raw(value: str) -> Number | str:
    """Query filter value for a key: numeric when it parses, else the raw text."""
    number = coerce_number(value)
    return number if number is not None else value


def id_sort_key(value: str) -> tuple[int, Number, str]:
    """Sort stringified keys numerically where possible ('9' before '10')."""
    number = coerce_number(value)
    if number is None:
        return (1, 0, value)
    return (0, number, value)
