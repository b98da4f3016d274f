"""Utility functions for podman-ssh."""

import math
import re

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|h|m|s)")
_DURATION_SCALE = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """Parse a timeout into seconds.

    Accepts plain seconds (``"45"``, ``"2.5"``) or duration strings made of
    ``h``/``m``/``s``/``ms`` parts (``"30s"``, ``"1m30s"``, ``"500ms"``).

    Raises:
        ValueError: If the value is malformed or not positive

    Example:
        >>> parse_duration("1m30s")
        90.0
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_SCALE[match.group(2)]
            pos = match.end()
        if pos != len(text):
            raise ValueError(f"invalid duration {value!r}") from None

    if not math.isfinite(seconds) or seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds
