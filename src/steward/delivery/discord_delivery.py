"""
Chat-platform boundary used by the reminder and poll schedulers.

The schedulers only ever need to send a DM, send to a channel, fetch a
message, read a reaction count and edit a message. ``DeliveryAdapter``
names exactly that surface so tests can substitute a fake, and
``DiscordDeliveryAdapter`` implements it over a py-cord bot.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Union

import discord

from steward.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID


IdLike = Union[str, int]


class DeliveryError(Exception):
    """A delivery target could not be resolved or cannot receive messages."""


class DeliveryAdapter(Protocol):
    async def send_direct_message(
        self, user_id: IdLike | UserID, *, content: Optional[str] = None, embed: Optional[discord.Embed] = None
    ) -> Any: ...

    async def send_channel_message(
        self, channel_id: IdLike | ChannelID, *, content: Optional[str] = None, embed: Optional[discord.Embed] = None
    ) -> Any: ...

    async def fetch_message(
        self, guild_id: IdLike | GuildID, channel_id: IdLike | ChannelID, message_id: IdLike | MessageID
    ) -> Any: ...

    def get_reaction_count(self, message: Any, emoji: str) -> int: ...

    async def edit_message(
        self, message: Any, *, content: Optional[str] = None, embed: Optional[discord.Embed] = None
    ) -> Any: ...


def _is_text_capable(channel: object) -> bool:
    return isinstance(channel, discord.abc.Messageable)


def _send_kwargs(content: Optional[str], embed: Optional[discord.Embed]) -> dict:
    kwargs: dict = {}
    if content is not None:
        kwargs["content"] = content
    if embed is not None:
        kwargs["embed"] = embed
    return kwargs


class DiscordDeliveryAdapter:
    """
    ``DeliveryAdapter`` backed by a ``discord.Bot``.

    Lookups try the client cache first and fall back to a REST fetch. Every
    method raises on failure (``discord.HTTPException`` subclasses or
    :class:`DeliveryError`); callers decide how to degrade.
    """

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    async def send_direct_message(
        self,
        user_id: IdLike | UserID,
        *,
        content: Optional[str] = None,
        embed: Optional[discord.Embed] = None,
    ) -> discord.Message:
        uid = UserID(user_id).to_int()
        user = self.bot.get_user(uid) or await self.bot.fetch_user(uid)
        return await user.send(**_send_kwargs(content, embed))

    async def _resolve_channel(self, channel_id: IdLike | ChannelID):
        cid = ChannelID(channel_id).to_int()
        channel = self.bot.get_channel(cid)
        if channel is None:
            channel = await self.bot.fetch_channel(cid)
        if channel is None or not _is_text_capable(channel):
            raise DeliveryError(f"Channel {cid} is not a text channel")
        return channel

    async def send_channel_message(
        self,
        channel_id: IdLike | ChannelID,
        *,
        content: Optional[str] = None,
        embed: Optional[discord.Embed] = None,
    ) -> discord.Message:
        channel = await self._resolve_channel(channel_id)
        return await channel.send(**_send_kwargs(content, embed))

    async def fetch_message(
        self,
        guild_id: IdLike | GuildID,
        channel_id: IdLike | ChannelID,
        message_id: IdLike | MessageID,
    ) -> discord.Message:
        """Resolve guild, then channel within it, then the message."""
        gid = GuildID(guild_id).to_int()
        guild = self.bot.get_guild(gid) or await self.bot.fetch_guild(gid)
        if guild is None:
            raise DeliveryError(f"Guild {gid} is not reachable")

        cid = ChannelID(channel_id).to_int()
        channel = guild.get_channel_or_thread(cid) or await guild.fetch_channel(cid)
        if channel is None or not _is_text_capable(channel):
            raise DeliveryError(f"Channel {cid} in guild {gid} is not a text channel")

        return await channel.fetch_message(MessageID(message_id).to_int())

    def get_reaction_count(self, message: discord.Message, emoji: str) -> int:
        """Total count for ``emoji`` on ``message``, bot reaction included; 0 if absent."""
        for reaction in message.reactions:
            if str(reaction.emoji) == emoji:
                return int(reaction.count)
        return 0

    async def edit_message(
        self,
        message: discord.Message,
        *,
        content: Optional[str] = None,
        embed: Optional[discord.Embed] = None,
    ) -> discord.Message:
        """Edit a message and strip its interactive components."""
        return await message.edit(**_send_kwargs(content, embed), view=None)
