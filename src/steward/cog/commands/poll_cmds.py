"""
Poll cog: reaction-based polls with optional automatic closing.

Slash command:
- /poll: Post a poll with 2 to 10 ``|``-separated options. With a duration
  the poll is tracked and tallied by the poll scheduler when it ends;
  without one it stays open and is never tallied automatically.

Requires the Manage Messages permission and a server context.
"""

import discord
from discord.ext import commands

from steward.datatypes.schedule_datatypes import Poll
from steward.scheduler.poll_tally import POLL_EMOJIS
from steward.services import StewardServices
from steward.storage.errors import StoreError
from steward.ui.poll_embed import build_poll_embed
from steward.util.format_utils import format_duration, generate_id, now_ms, parse_time_string
from steward.util.logger import get_logger

logger = get_logger("poll_commands")


def split_options(raw: str) -> list[str]:
    """Split ``"Yes | No | Maybe"`` into trimmed, non-empty labels."""
    return [option.strip() for option in raw.split("|") if option.strip()]


class PollCog(commands.Cog):
    """Create polls and hand timed ones to the poll scheduler."""

    def __init__(self, discord_bot_instance: discord.Bot, services: StewardServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("[POLL CMDS] Poll cog loaded")

    def _validate(self, options: list[str], duration_input: str | None) -> tuple[str | None, int | None]:
        """Return ``(error, duration_ms)``; ``duration_ms`` is None for an open-ended poll."""
        if len(options) < 2:
            return "A poll must have at least 2 options. Separate options with `|`.", None

        max_options = self.services.config.poll_max_options
        if len(options) > max_options:
            return f"A poll can have a maximum of {max_options} options.", None

        if not duration_input:
            return None, None

        duration = parse_time_string(duration_input)
        if not duration:
            return "Invalid duration format. Use formats like: `1h` (1 hour), `6h` (6 hours), `1d` (1 day).", None

        max_duration = self.services.config.poll_max_duration_ms
        if duration > max_duration:
            return f"Poll duration cannot exceed {format_duration(max_duration)}.", None

        return None, duration

    @commands.slash_command(name="poll", description="Create a poll")
    @discord.default_permissions(manage_messages=True)
    @discord.option("question", str, description="The poll question")
    @discord.option("options", str, description='Poll options separated by | (e.g., "Yes | No | Maybe")')
    @discord.option(
        "duration", str, required=False, default=None,
        description="Poll duration (e.g., 1h, 6h, 1d, 3d). Leave empty for no auto-close.",
    )
    @discord.option("anonymous", bool, required=False, default=False, description="Hide who voted for what (default: false)")
    async def poll(
        self,
        ctx: discord.ApplicationContext,
        question: str,
        options: str,
        duration: str | None = None,
        anonymous: bool = False,
    ):
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return

        labels = split_options(options)
        error, duration_ms = self._validate(labels, duration)
        if error:
            await ctx.respond(error, ephemeral=True)
            return

        end_time = now_ms() + duration_ms if duration_ms is not None else None
        embed = build_poll_embed(question, labels, str(ctx.author), anonymous=bool(anonymous), end_time=end_time)

        await ctx.respond(embed=embed)
        message = await ctx.interaction.original_response()

        for emoji in POLL_EMOJIS[:len(labels)]:
            try:
                await message.add_reaction(emoji)
            except discord.HTTPException as exc:
                logger.error("[POLL CMDS] Failed to add reaction %s to poll %s: %s", emoji, message.id, exc)

        if end_time is None:
            return

        poll = Poll(
            id=generate_id(),
            message_id=str(message.id),
            channel_id=str(ctx.channel_id),
            question=question,
            options=labels,
            anonymous=bool(anonymous),
            created_by=str(ctx.author.id),
            created_at=now_ms(),
            end_time=end_time,
        )
        try:
            self.services.polls.add(ctx.guild_id, poll)
        except StoreError as exc:
            logger.error("[POLL CMDS] Could not save poll %s: %s", poll.id, exc)
            await ctx.followup.send(
                "The poll was posted but could not be saved, so it will not close automatically.",
                ephemeral=True,
            )


def setup(discord_bot_instance, services: StewardServices):
    discord_bot_instance.add_cog(PollCog(discord_bot_instance, services))
