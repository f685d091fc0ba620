"""
Type-safe wrapper classes for Discord identifiers.

Discord snowflakes are 64-bit integers but are persisted as strings in the
JSON tables, so every wrapper stores the string form and converts to ``int``
only at the Discord API boundary.
"""

from __future__ import annotations

from typing import Union


# Stored as ``guildId`` for reminders created outside a guild
DM_GUILD_ID = "dm"


class Snowflake:
    """
    Base wrapper for a Discord snowflake ID.

    Attributes:
        _value (str): The snowflake ID stored as a string for JSON parity.

    Example:
        >>> uid = UserID(123456789012345678)
        >>> uid.to_int()
        123456789012345678
        >>> str(uid)
        '123456789012345678'
        >>> UserID(" 42 ") == "42"
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Args:
            value: The snowflake ID as a string, int, or another wrapper.

        Raises:
            ValueError: If the value cannot be converted to a valid snowflake.
        """
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool: {value}")
        elif isinstance(value, int):
            if value < 0:
                raise ValueError(f"Snowflake must be non-negative: {value}")
            self._value = str(value)
        elif isinstance(value, str):
            number = int(value.strip())
            if number < 0:
                raise ValueError(f"Snowflake must be non-negative: {value}")
            self._value = str(number)
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls."""
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(Snowflake):
    """Snowflake of a Discord user."""

    __slots__ = ()


class GuildID(Snowflake):
    """Snowflake of a Discord guild."""

    __slots__ = ()


class ChannelID(Snowflake):
    """Snowflake of a Discord channel or thread."""

    __slots__ = ()


class MessageID(Snowflake):
    """Snowflake of a Discord message."""

    __slots__ = ()
