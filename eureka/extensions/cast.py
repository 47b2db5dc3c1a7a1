"""Value casting with the host's loose-typing rules.

Block arguments arrive as whatever the user typed or dropped in: strings,
numbers, booleans. ``Cast`` converts between them exactly the way the host
engine does, so extension code behaves the same as built-in blocks.
"""

from __future__ import annotations

import math
import random
import re
from typing import Any

_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_PREFIXED = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_HEX_COLOR = re.compile(r"^#?([a-f\d])([a-f\d])([a-f\d])$|^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)

_BASES = {"x": 16, "o": 8, "b": 2}


def _loose_number(value: Any) -> float | int:
    """Numeric value of ``value``; NaN when it is not a number."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    text = str(value).strip()
    if text == "":
        return 0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    prefixed = _PREFIXED.match(text)
    if prefixed:
        try:
            return int(prefixed.group(2), _BASES[prefixed.group(1).lower()])
        except ValueError:
            return math.nan
    if _DECIMAL.match(text):
        number = float(text)
        if number.is_integer() and "." not in text and "e" not in text.lower():
            return int(number)
        return number
    return math.nan


def _is_nan(value: float | int) -> bool:
    return isinstance(value, float) and math.isnan(value)


class Cast:
    """Conversions exposed to extensions as ``Scratch.Cast``."""

    LIST_INVALID = "INVALID"
    LIST_ALL = "ALL"

    @staticmethod
    def to_number(value: Any) -> float | int:
        """Convert to a number; anything non-numeric becomes 0."""
        number = _loose_number(value)
        return 0 if _is_nan(number) else number

    @staticmethod
    def to_boolean(value: Any) -> bool:
        """Convert to a boolean; "", "0" and "false" are false."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value != "" and value != "0" and value.lower() != "false"
        return bool(value)

    @staticmethod
    def to_string(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            if math.isnan(value):
                return "NaN"
            if math.isinf(value):
                return "Infinity" if value > 0 else "-Infinity"
            if value.is_integer():
                return str(int(value))
        if value is None:
            return ""
        return str(value)

    @staticmethod
    def to_rgb_color_list(value: Any) -> list[int]:
        """Convert a hex string or packed integer colour to ``[r, g, b]``."""
        if isinstance(value, str) and value.startswith("#"):
            match = _HEX_COLOR.match(value)
            if match:
                if match.group(1):
                    return [int(match.group(i) * 2, 16) for i in (1, 2, 3)]
                return [int(match.group(i), 16) for i in (4, 5, 6)]
            return [0, 0, 0]
        number = Cast.to_number(value)
        packed = int(number) & 0xFFFFFF if math.isfinite(number) else 0
        return [(packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF]

    @staticmethod
    def is_white_space(value: Any) -> bool:
        return value is None or (isinstance(value, str) and value.strip() == "")

    @staticmethod
    def compare(v1: Any, v2: Any) -> float | int:
        """Compare two values; negative, zero or positive like the host.

        Numeric when both sides look numeric, otherwise case-insensitive
        string comparison.
        """
        n1 = _loose_number(v1)
        n2 = _loose_number(v2)
        if n1 == 0 and Cast.is_white_space(v1):
            n1 = math.nan
        if n2 == 0 and Cast.is_white_space(v2):
            n2 = math.nan
        if _is_nan(n1) or _is_nan(n2):
            s1 = Cast.to_string(v1).lower()
            s2 = Cast.to_string(v2).lower()
            if s1 < s2:
                return -1
            if s1 > s2:
                return 1
            return 0
        if math.isinf(n1) and math.isinf(n2) and n1 == n2:
            return 0
        return n1 - n2

    @staticmethod
    def is_int(value: Any) -> bool:
        if isinstance(value, bool):
            return True
        if isinstance(value, (int, float)):
            return _is_nan(value) or float(value).is_integer()
        if isinstance(value, str):
            return "." not in value
        return False

    @staticmethod
    def to_list_index(index: Any, length: int, accept_all: bool = False) -> int | str:
        """Convert a 1-based list index (or "all"/"last"/"random")."""
        if not isinstance(index, (int, float)) or isinstance(index, bool):
            if index == "all":
                return Cast.LIST_ALL if accept_all else Cast.LIST_INVALID
            if index == "last":
                return length if length > 0 else Cast.LIST_INVALID
            if index in ("random", "any"):
                return random.randint(1, length) if length > 0 else Cast.LIST_INVALID
        number = Cast.to_number(index)
        if math.isinf(number):
            return Cast.LIST_INVALID
        position = math.floor(number)
        if position < 1 or position > length:
            return Cast.LIST_INVALID
        return position
