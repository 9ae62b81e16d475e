"""
Mockzilla Value Coercion

Comparison and conversion rules for workflow values. Workflow definitions
are authored as JSON and compare values the way JSON authors expect:
"1" equals 1, true equals 1, and objects only equal themselves.
"""

import math
import re
from typing import Any

from .path_resolver import MISSING

_NUMERIC_PATTERN = re.compile(
    r'^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|Infinity)$'
)
_HEX_PATTERN = re.compile(r'^0[xX][0-9a-fA-F]+$')

NAN = float('nan')


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_nullish(value: Any) -> bool:
    return value is None or value is MISSING


def format_number(value: float) -> str:
    """Render a number the way JSON templates expect ("2" rather than "2.0")."""
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'Infinity' if value > 0 else '-Infinity'
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_js_string(value: Any) -> str:
    """
    Convert a value to its string form.

    Args:
        value: Any JSON-like value (or MISSING)

    Returns:
        String representation used for embedded interpolation and
        substring matching
    """
    if value is MISSING:
        return 'undefined'
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if _is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ','.join('' if _is_nullish(item) else to_js_string(item) for item in value)
    if isinstance(value, dict):
        return '[object Object]'
    return str(value)


def to_number(value: Any) -> float:
    """
    Coerce a value to a number.

    Non-numeric values coerce to NaN, which fails every comparison.
    """
    if value is MISSING:
        return NAN
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if _is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if _HEX_PATTERN.match(text):
            return int(text, 16)
        if _NUMERIC_PATTERN.match(text):
            return float(text.replace('Infinity', 'inf'))
        return NAN
    if isinstance(value, list):
        return to_number(to_js_string(value))
    return NAN


def to_boolean(value: Any) -> bool:
    """
    Truthiness of a JSON value: null, MISSING, false, 0, NaN and "" are
    false; every list and object (even empty) is true.
    """
    if _is_nullish(value):
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ''
    return True


def _to_primitive(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return to_js_string(value)
    return value


def loose_equals(left: Any, right: Any) -> bool:
    """
    Loose (type-coercing) equality.

    Args:
        left: First value
        right: Second value

    Returns:
        True if the values are loosely equal
    """
    if _is_nullish(left) or _is_nullish(right):
        return _is_nullish(left) and _is_nullish(right)

    left_object = isinstance(left, (list, dict))
    right_object = isinstance(right, (list, dict))
    if left_object and right_object:
        return left is right
    if left_object or right_object:
        return loose_equals(_to_primitive(left), _to_primitive(right))

    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, bool) and isinstance(right, bool):
        return left == right

    # Remaining mixes (number/string/bool) compare numerically
    return to_number(left) == to_number(right)


def strict_equals(left: Any, right: Any) -> bool:
    """
    Strict equality with NaN equal to itself (membership semantics).

    Objects are only equal to themselves; booleans never equal numbers.
    """
    if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
        return left is right
    if _is_nullish(left) or _is_nullish(right):
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        if isinstance(left, float) and isinstance(right, float) and math.isnan(left) and math.isnan(right):
            return True
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return False
