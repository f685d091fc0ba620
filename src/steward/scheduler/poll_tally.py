"""Vote counting and result rendering helpers for reaction-based polls."""

from __future__ import annotations

import math
from typing import Sequence

from steward.datatypes.schedule_datatypes import PollOptionResult, PollResult

# Option i is voted for with POLL_EMOJIS[i]; the order must never change
POLL_EMOJIS: tuple[str, ...] = ("1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟")

PROGRESS_BAR_CELLS = 10
FILLED_CELL = "█"
EMPTY_CELL = "░"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (builtin round() would give round(2.5) == 2)."""
    return int(math.floor(value + 0.5))


def discount_bot_reaction(raw_count: int) -> int:
    """Remove the bot's own seed reaction from a reaction count, never going below zero."""
    return max(0, int(raw_count) - 1)


def tally_votes(options: Sequence[str], counts: Sequence[int]) -> PollResult:
    """Build the result of a poll from per-option vote counts.

    Args:
        options: Option labels in poll order.
        counts: Votes per option in the same order, bot reaction already removed.

    Returns:
        PollResult: Per-option counts and percentages plus the winner data.

    Raises:
        ValueError: If ``options`` and ``counts`` differ in length or there
            are more options than emojis.
    """
    if len(options) != len(counts):
        raise ValueError(f"{len(options)} options but {len(counts)} counts")
    if len(options) > len(POLL_EMOJIS):
        raise ValueError(f"A poll supports at most {len(POLL_EMOJIS)} options")

    total = sum(counts)
    results = [
        PollOptionResult(
            index=index,
            option=option,
            emoji=POLL_EMOJIS[index],
            count=count,
            percentage=round_half_up(count / total * 100) if total else 0,
        )
        for index, (option, count) in enumerate(zip(options, counts))
    ]
    return PollResult(results=results, total_votes=total)


def generate_progress_bar(percentage: float) -> str:
    """Render a 10-cell bar where each filled cell stands for 10%.

    >>> generate_progress_bar(75)
    '████████░░'
    """
    filled = max(0, min(PROGRESS_BAR_CELLS, round_half_up(percentage / 10)))
    return FILLED_CELL * filled + EMPTY_CELL * (PROGRESS_BAR_CELLS - filled)
