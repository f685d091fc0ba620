"""
Pytest configuration and fixtures for Steward tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from steward.delivery.discord_delivery import DeliveryError  # noqa: E402
from steward.storage.keyed_store import KeyedStore  # noqa: E402


class FakeClock:
    """Epoch-millisecond clock that only moves when a test moves it."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


class FakeDelivery:
    """In-memory stand-in for the Discord delivery adapter."""

    def __init__(self) -> None:
        self.direct_messages: list[dict] = []
        self.channel_messages: list[dict] = []
        self.edits: list[dict] = []
        self.messages: dict[str, SimpleNamespace] = {}
        self.blocked_dms: set[str] = set()
        self.broken_channels: set[str] = set()
        self.fail_edits = False

    def add_message(self, message_id, reaction_counts, embeds=None) -> SimpleNamespace:
        message = SimpleNamespace(
            id=int(message_id),
            reaction_counts=dict(reaction_counts),
            embeds=list(embeds or []),
        )
        self.messages[str(message_id)] = message
        return message

    async def send_direct_message(self, user_id, *, content=None, embed=None):
        if str(user_id) in self.blocked_dms:
            raise DeliveryError(f"DMs closed for {user_id}")
        self.direct_messages.append({"user_id": str(user_id), "content": content, "embed": embed})

    async def send_channel_message(self, channel_id, *, content=None, embed=None):
        if str(channel_id) in self.broken_channels:
            raise DeliveryError(f"Channel {channel_id} is gone")
        self.channel_messages.append({"channel_id": str(channel_id), "content": content, "embed": embed})

    async def fetch_message(self, guild_id, channel_id, message_id):
        if str(channel_id) in self.broken_channels:
            raise DeliveryError(f"Channel {channel_id} is gone")
        try:
            return self.messages[str(message_id)]
        except KeyError:
            raise DeliveryError(f"Message {message_id} not found") from None

    def get_reaction_count(self, message, emoji) -> int:
        return message.reaction_counts.get(emoji, 0)

    async def edit_message(self, message, *, content=None, embed=None):
        if self.fail_edits:
            raise DeliveryError("Missing permissions")
        self.edits.append({"message_id": message.id, "content": content, "embed": embed})


@pytest.fixture()
def store(tmp_path: Path) -> KeyedStore:
    return KeyedStore(tmp_path / "data")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def delivery() -> FakeDelivery:
    return FakeDelivery()
