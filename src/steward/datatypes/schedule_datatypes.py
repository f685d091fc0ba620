"""
Records owned by the reminder and poll schedulers.

``to_dict``/``from_dict`` translate between the snake_case attributes used in
Python and the camelCase keys of the persisted JSON tables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from steward.datatypes.discord_datatypes import DM_GUILD_ID


def _require(raw: Mapping[str, Any], key: str) -> Any:
    if key not in raw or raw[key] is None:
        raise ValueError(f"record is missing '{key}'")
    return raw[key]


@dataclass(slots=True)
class Reminder:
    """A one-shot notification waiting for ``remind_at`` (epoch ms)."""

    id: str
    user_id: str
    message: str
    channel_id: Optional[str]
    guild_id: str
    created_at: int
    remind_at: int

    def is_due(self, now_ms: int) -> bool:
        return self.remind_at <= now_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "message": self.message,
            "channelId": self.channel_id,
            "guildId": self.guild_id,
            "createdAt": self.created_at,
            "remindAt": self.remind_at,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Reminder":
        """Build a reminder from its stored form.

        Raises:
            ValueError: If a required key is missing or a timestamp is not numeric.
        """
        channel_id = raw.get("channelId")
        return cls(
            id=str(_require(raw, "id")),
            user_id=str(_require(raw, "userId")),
            message=str(raw.get("message", "")),
            channel_id=str(channel_id) if channel_id is not None else None,
            guild_id=str(raw.get("guildId") or DM_GUILD_ID),
            created_at=int(raw.get("createdAt", 0)),
            remind_at=int(_require(raw, "remindAt")),
        )


@dataclass(slots=True)
class Poll:
    """A time-boxed vote attached to an already posted message.

    ``options`` order is significant: option ``i`` is voted for with the
    ``i``-th emoji of the positional alphabet.
    """

    id: str
    message_id: str
    channel_id: str
    question: str
    options: List[str]
    created_by: str
    created_at: int
    end_time: int
    anonymous: bool = False

    def is_expired(self, now_ms: int) -> bool:
        return self.end_time <= now_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "messageId": self.message_id,
            "channelId": self.channel_id,
            "question": self.question,
            "options": list(self.options),
            "anonymous": self.anonymous,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
            "endTime": self.end_time,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Poll":
        """Build a poll from its stored form.

        Raises:
            ValueError: If a required key is missing, ``options`` is not a
                list, or ``endTime`` is not numeric.
        """
        options = _require(raw, "options")
        if not isinstance(options, list):
            raise ValueError("poll 'options' must be a list")
        return cls(
            id=str(_require(raw, "id")),
            message_id=str(_require(raw, "messageId")),
            channel_id=str(_require(raw, "channelId")),
            question=str(raw.get("question", "")),
            options=[str(option) for option in options],
            anonymous=bool(raw.get("anonymous", False)),
            created_by=str(raw.get("createdBy", "")),
            created_at=int(raw.get("createdAt", 0)),
            end_time=int(_require(raw, "endTime")),
        )


@dataclass(slots=True)
class PollOptionResult:
    """Final vote count of a single poll option."""

    index: int
    option: str
    emoji: str
    count: int
    percentage: int


@dataclass(slots=True)
class PollResult:
    """Outcome of a tally.

    Attributes:
        results: One entry per option, in the poll's option order.
        total_votes: Sum of all option counts.
    """

    results: List[PollOptionResult] = field(default_factory=list)
    total_votes: int = 0

    @property
    def sorted_results(self) -> List[PollOptionResult]:
        """Results by descending count; equal counts keep option order."""
        return sorted(self.results, key=lambda result: result.count, reverse=True)

    @property
    def no_votes(self) -> bool:
        return self.total_votes == 0

    @property
    def winners(self) -> List[PollOptionResult]:
        """Every option holding the maximum count, empty when nobody voted."""
        if self.no_votes:
            return []
        ordered = self.sorted_results
        top = ordered[0].count
        return [result for result in ordered if result.count == top]

    @property
    def is_tie(self) -> bool:
        return len(self.winners) > 1

    @property
    def winner(self) -> Optional[PollOptionResult]:
        """The single winner, or None for a tie or an empty poll."""
        winners = self.winners
        return winners[0] if len(winners) == 1 else None
