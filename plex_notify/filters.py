# =============================================================================
# Plex Notify -- Session Filters
# =============================================================================

"""
Filter chain evaluation for playback sessions.

Filters come from user configuration and are dynamically typed, so values
are coerced the way the configuration UI expects (JavaScript semantics):

- ``str``: ``String(x)``; a missing field becomes ``"undefined"``.
- ``num``: ``Number(x)``; anything non-numeric becomes NaN.
- ``bool``: truthiness, where any object or non-empty string is true.
- ``default``: compared as-is.

Operators put the filter literal on the left::

    {"key": "viewOffset", "value": 60000, "valueType": "num", "operator": "lt"}

matches when ``60000 < session["viewOffset"]``.

Nested fields use dot notation (``"Player.state"``, ``"Media.0.bitrate"``).
"""

from __future__ import annotations

import math
import re

from typing import Any, Iterable, Mapping

from ._logging import logger
from .errors import PlexFilterError
from .types import FilterSpec, Operator, ValueType


class _Undefined:
    """Value of a path that does not resolve."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()

_NAN = float("nan")
_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_RADIX = {"0x": 16, "0o": 8, "0b": 2}


# -- Path resolution -------------------------------------------------------------


def resolve_path(record: Any, path: str) -> Any:
    """Walk a dot-separated path; unresolvable paths give ``UNDEFINED``."""
    value = record
    for part in path.split("."):
        if isinstance(value, Mapping):
            value = value.get(part, UNDEFINED)
        elif isinstance(value, (list, tuple)) and part.isdigit():
            index = int(part)
            value = value[index] if index < len(value) else UNDEFINED
        else:
            return UNDEFINED
    return value


# -- Coercion --------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_str(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(
            "" if item is None or item is UNDEFINED else to_str(item) for item in value
        )
    if isinstance(value, Mapping):
        return "[object Object]"
    return str(value)


def to_num(value: Any) -> float | int:
    if value is UNDEFINED:
        return _NAN
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        radix = _RADIX.get(text[:2].lower())
        if radix is not None:
            try:
                return int(text[2:], radix)
            except ValueError:
                return _NAN
        if _DECIMAL.match(text):
            return float(text)
        return _NAN
    if isinstance(value, (list, tuple)):
        return to_num(to_str(value))
    return _NAN


def to_bool(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return not (value == 0 or math.isnan(value))
    if isinstance(value, str):
        return value != ""
    # objects and arrays are always truthy
    return True


def coerce(value: Any, value_type: ValueType) -> Any:
    if value_type == ValueType.STR:
        return to_str(value)
    if value_type == ValueType.NUM:
        return to_num(value)
    if value_type == ValueType.BOOL:
        return to_bool(value)
    return value


# -- Comparison ------------------------------------------------------------------


def _is_object(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def _to_primitive(value: Any) -> Any:
    return to_str(value) if _is_object(value) else value


def loose_equals(a: Any, b: Any) -> bool:
    """Abstract equality (``==``) between two coerced values."""
    nullish = (None, UNDEFINED)
    if a in nullish or b in nullish:
        return a in nullish and b in nullish
    if _is_object(a) and _is_object(b):
        return a is b
    a, b = _to_primitive(a), _to_primitive(b)
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, bool) and isinstance(b, bool):
        return a == b
    x, y = to_num(a), to_num(b)
    return x == y


def _less_than(a: Any, b: Any) -> bool | None:
    """``a < b``; None when either side is NaN (undefined result)."""
    a, b = _to_primitive(a), _to_primitive(b)
    if isinstance(a, str) and isinstance(b, str):
        return a < b
    x, y = to_num(a), to_num(b)
    if math.isnan(x) or math.isnan(y):
        return None
    return x < y


def compare(operator: Operator, left: Any, right: Any) -> bool:
    if operator == Operator.EQ:
        return loose_equals(left, right)
    if operator == Operator.NEQ:
        return not loose_equals(left, right)
    if operator == Operator.LT:
        return _less_than(left, right) is True
    if operator == Operator.GT:
        return _less_than(right, left) is True
    if operator == Operator.LTE:
        return _less_than(right, left) is False
    if operator == Operator.GTE:
        return _less_than(left, right) is False
    raise PlexFilterError(f"Unknown operator: {operator!r}")


# -- Evaluation ------------------------------------------------------------------


def evaluate(session: Any, spec: FilterSpec) -> bool:
    """Evaluate a single filter against a session record."""
    session_value = coerce(resolve_path(session, spec.key), spec.value_type)
    filter_value = coerce(spec.value, spec.value_type)
    result = compare(spec.operator, filter_value, session_value)
    logger.debug(
        "evaluate %r %s %r -> %s", filter_value, spec.operator.value, session_value, result
    )
    return result


def matches(session: Any, filters: Iterable[FilterSpec]) -> bool:
    """True when every filter holds. An empty chain always matches.

    Filters are evaluated in ascending ``idx`` order and all of them run,
    so the debug trace is complete.
    """
    match = True
    for spec in sorted(filters, key=lambda f: f.idx):
        match = evaluate(session, spec) and match
    return match


# -- Configuration ---------------------------------------------------------------


def filter_from_dict(raw: Mapping[str, Any]) -> FilterSpec:
    """Build a :class:`FilterSpec` from a config entry.

    Accepts ``valueType`` (as stored by the configuration UI) or
    ``value_type``. Unknown value types fall back to ``default``.

    Raises:
        PlexFilterError: Missing key or unknown operator.
    """
    key = raw.get("key")
    if not key or not isinstance(key, str):
        raise PlexFilterError(f"Filter is missing a field path: {dict(raw)!r}")

    try:
        operator = Operator(raw.get("operator", Operator.EQ.value))
    except ValueError:
        raise PlexFilterError(f"Unknown filter operator: {raw.get('operator')!r}") from None

    raw_type = raw.get("valueType", raw.get("value_type", ValueType.DEFAULT.value))
    try:
        value_type = ValueType(raw_type)
    except ValueError:
        logger.warning("Unknown filter value type %r, comparing as-is", raw_type)
        value_type = ValueType.DEFAULT

    try:
        idx = int(raw.get("idx", 0))
    except (TypeError, ValueError):
        raise PlexFilterError(f"Filter idx must be an integer: {raw.get('idx')!r}") from None

    return FilterSpec(
        key=key,
        value=raw.get("value"),
        value_type=value_type,
        operator=operator,
        idx=idx,
    )


def load_filters(raw: Iterable[Mapping[str, Any] | FilterSpec] | None) -> list[FilterSpec]:
    """Build and sort a filter chain by ``idx``."""
    if not raw:
        return []
    specs = [item if isinstance(item, FilterSpec) else filter_from_dict(item) for item in raw]
    return sorted(specs, key=lambda f: f.idx)


class FilterEngine:
    """A loaded, ``idx``-ordered filter chain."""

    def __init__(self, filters: Iterable[Mapping[str, Any] | FilterSpec] | None = None) -> None:
        self._filters = tuple(load_filters(filters))

    @property
    def filters(self) -> tuple[FilterSpec, ...]:
        return self._filters

    def matches(self, session: Any) -> bool:
        return matches(session, self._filters)

    def __len__(self) -> int:
        return len(self._filters)
