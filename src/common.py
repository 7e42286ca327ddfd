"""Common utilities and types for chart lifecycle automation."""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

_DURATION_UNITS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}

_DURATION_PART = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')


@dataclass
class ActionResult:
    """Result returned by a chart lifecycle operation."""
    success: bool
    message: str = ''
    duration: float = 0.0
    details: dict = field(default_factory=dict)


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds.

    Accepts Go-style duration strings as used in annotations
    (e.g. "90s", "1h30m", "250ms") as well as plain numbers, which are
    interpreted as seconds.

    Args:
        value: Duration string or number

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"invalid duration {value!r}")
        try:
            return float(value)
        except OverflowError:
            raise ValueError(f"invalid duration {value!r}") from None

    text = str(value).strip()
    if text in ('0', '+0', '-0'):
        return 0.0

    sign = 1.0
    if text[:1] in ('+', '-'):
        sign = -1.0 if text[0] == '-' else 1.0
        text = text[1:]

    if not text:
        raise ValueError(f"invalid duration {value!r}")

    try:
        total = float(text)
    except ValueError:
        total = 0.0
        pos = 0
        while pos < len(text):
            match = _DURATION_PART.match(text, pos)
            if not match:
                raise ValueError(f"invalid duration {value!r}") from None
            total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()

    # float() accepts "inf", "nan" and overflows huge values to inf
    if not math.isfinite(total):
        raise ValueError(f"invalid duration {value!r}")
    return sign * total


def format_duration(seconds: float) -> str:
    """Format seconds the way Go prints a time.Duration (e.g. "1h30m0s")."""
    if seconds == 0:
        return '0s'
    if seconds < 1:
        return f"{seconds * 1000:g}ms"

    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    out = ''
    if hours:
        out += f"{int(hours)}h"
    if hours or minutes:
        out += f"{int(minutes)}m"
    return out + f"{secs:g}s"


def nested_get(obj: Optional[dict], *path: str, default: Any = None) -> Any:
    """Look up a nested key path in a dict, returning default if absent."""
    current: Any = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current
