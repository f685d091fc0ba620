"""
Embed creation for reminders: the delivered notification and the ``/reminders`` listing.
"""

import datetime
from typing import Sequence

import discord

from steward.datatypes.schedule_datatypes import Reminder
from steward.util.format_utils import discord_timestamp

REMINDER_COLOR = discord.Color.from_rgb(0x00, 0x99, 0xFF)
LISTING_COLOR = discord.Color.from_rgb(0x34, 0x98, 0xDB)

# Discord rejects embeds with more than 25 fields
MAX_LISTED_REMINDERS = 25
MESSAGE_PREVIEW_LENGTH = 200


def build_reminder_embed(reminder: Reminder) -> discord.Embed:
    """Create the embed delivered when a reminder fires."""
    embed = discord.Embed(
        title="⏰ Reminder!",
        description=reminder.message,
        color=REMINDER_COLOR,
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.add_field(name="Set", value=discord_timestamp(reminder.created_at, "R"), inline=True)
    embed.set_footer(text=f"Reminder ID: {reminder.id}")
    return embed


def _preview(message: str) -> str:
    if len(message) <= MESSAGE_PREVIEW_LENGTH:
        return message
    return message[:MESSAGE_PREVIEW_LENGTH] + "..."


def build_reminder_list_embed(reminders: Sequence[Reminder]) -> discord.Embed:
    """
    Create the ``/reminders`` listing.

    Args:
        reminders: Pending reminders, already sorted soonest first.

    Returns:
        discord.Embed: One field per reminder (at most 25) plus a trailer
        counting the ones that did not fit.
    """
    embed = discord.Embed(
        title="Your Reminders",
        description=f"You have {len(reminders)} active reminder(s)",
        color=LISTING_COLOR,
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.set_footer(text="Use /cancelreminder <id> to cancel a reminder")

    # One field is given up for the trailer when the list does not fit
    if len(reminders) > MAX_LISTED_REMINDERS:
        shown = reminders[:MAX_LISTED_REMINDERS - 1]
    else:
        shown = reminders

    for reminder in shown:
        embed.add_field(
            name=f"ID: `{reminder.id}`",
            value=(
                f"**Message:** {_preview(reminder.message)}\n"
                f"**Reminds:** {discord_timestamp(reminder.remind_at, 'R')} "
                f"({discord_timestamp(reminder.remind_at, 'f')})"
            ),
            inline=False,
        )

    if len(shown) < len(reminders):
        embed.add_field(
            name="\u200b",
            value=f"*...and {len(reminders) - len(shown)} more reminder(s)*",
            inline=False,
        )
    return embed
