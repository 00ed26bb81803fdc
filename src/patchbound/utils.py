"""Shared numeric helpers for patchbound."""

import math
import re

# Longest leading decimal literal, as accepted by the browser's parseFloat()
_FLOAT_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_float(text: str) -> float:
    """Parse the leading floating-point literal of ``text``.

    Mirrors the lenient parsing used by the web front-ends devices are usually
    driven from: leading whitespace is skipped, trailing garbage is ignored
    ("12abc" -> 12.0) and text without a numeric prefix yields NaN instead of
    raising.

    Args:
        text: Raw user input

    Returns:
        Parsed value, or ``math.nan`` if no number could be read
    """
    match = _FLOAT_PREFIX.match(text.lstrip())
    if match is None:
        return math.nan

    literal = match.group(0)
    if literal.lstrip("+-") == "Infinity":
        return -math.inf if literal.startswith("-") else math.inf
    return float(literal)


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Clamp value to the closed range [minimum, maximum]."""
    return max(minimum, min(value, maximum))


def format_value(value: float, precision: int = 1) -> str:
    """Format a parameter value for text display (fixed decimal places)."""
    return f"{value:.{precision}f}"
