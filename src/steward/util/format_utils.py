import random
import re
import string
import time
from typing import Optional

# A single "<count><unit>" token; compound durations such as "1h30m" are rejected
TIME_STRING_PATTERN = re.compile(r"^(\d+)([smhdw])$", re.IGNORECASE | re.ASCII)

UNIT_MILLISECONDS = {
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
}

_ID_ALPHABET = string.digits + string.ascii_lowercase


def parse_time_string(text: str) -> Optional[int]:
    """Convert a duration such as ``"30m"`` or ``"2D"`` to milliseconds.

    Units are ``s``, ``m``, ``h``, ``d`` and ``w``, case-insensitive. ``"0m"``
    is valid and yields 0; negative numbers, missing units and compound
    durations are invalid.

    Args:
        text: Raw user input. Surrounding whitespace is ignored.

    Returns:
        The duration in milliseconds, or None if the text is not a valid duration.
    """
    if not isinstance(text, str):
        return None
    match = TIME_STRING_PATTERN.match(text.strip())
    if not match:
        return None
    return int(match.group(1)) * UNIT_MILLISECONDS[match.group(2).lower()]


def format_duration(milliseconds: int) -> str:
    """
    Convert a duration in milliseconds to a short human-readable string.

    Args:
        milliseconds (int): Duration in milliseconds.

    Returns:
        str: The duration in the largest whole unit, e.g. ``"30 days"``.
    """
    seconds = max(0, int(milliseconds) // 1000)
    if seconds < 60:
        return f"{seconds} sec{'s' if seconds != 1 else ''}"
    elif seconds < 3600:
        mins = seconds // 60
        return f"{mins} min{'s' if mins != 1 else ''}"
    elif seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    else:
        days = seconds // 86400
        return f"{days} day{'s' if days != 1 else ''}"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id() -> str:
    """Return an id of the form ``<epoch ms>-<9 base36 chars>``.

    Unique in practice for a single low-volume process; no collision check is made.
    """
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{now_ms()}-{suffix}"


def discord_timestamp(epoch_ms: int, style: str = "R") -> str:
    """Render a Discord ``<t:...>`` timestamp tag for an epoch-ms instant."""
    return f"<t:{int(epoch_ms) // 1000}:{style}>"
