"""
Reminder cog: personal one-shot reminders.

Slash commands:
- /remind: Schedule a reminder after a duration like ``10m`` or ``2d``
- /reminders: List your pending reminders
- /cancelreminder: Cancel one of your reminders by id

All responses are ephemeral.
"""

import discord
from discord.ext import commands

from steward.datatypes.discord_datatypes import DM_GUILD_ID
from steward.datatypes.schedule_datatypes import Reminder
from steward.services import StewardServices
from steward.storage.errors import StoreError
from steward.ui.reminder_embed import build_reminder_list_embed
from steward.util.format_utils import discord_timestamp, format_duration, generate_id, now_ms, parse_time_string
from steward.util.logger import get_logger

logger = get_logger("reminder_commands")

STORAGE_FAILURE_MESSAGE = "Your reminders could not be accessed right now. Please try again later."


class ReminderCog(commands.Cog):
    """Create, list and cancel personal reminders."""

    def __init__(self, discord_bot_instance: discord.Bot, services: StewardServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("[REMINDER CMDS] Reminder cog loaded")

    @commands.slash_command(name="remind", description="Set a reminder")
    @discord.option("time", str, description="When to remind you (e.g., 10m, 1h, 2d, 1w)")
    @discord.option("message", str, description="What to remind you about")
    async def remind(self, ctx: discord.ApplicationContext, time: str, message: str):
        duration = parse_time_string(time)
        if not duration:
            await ctx.respond(
                "Invalid time format. Use formats like: `10m` (10 minutes), `1h` (1 hour), "
                "`2d` (2 days), `1w` (1 week).",
                ephemeral=True,
            )
            return

        max_duration = self.services.config.reminder_max_duration_ms
        if duration > max_duration:
            await ctx.respond(
                f"Reminder duration cannot exceed {format_duration(max_duration)}.",
                ephemeral=True,
            )
            return

        created_at = now_ms()
        reminder = Reminder(
            id=generate_id(),
            user_id=str(ctx.author.id),
            message=message,
            channel_id=str(ctx.channel_id) if ctx.channel_id else None,
            guild_id=str(ctx.guild_id) if ctx.guild_id else DM_GUILD_ID,
            created_at=created_at,
            remind_at=created_at + duration,
        )

        try:
            self.services.reminders.add(reminder)
        except StoreError as exc:
            logger.error("[REMINDER CMDS] Could not save reminder for %s: %s", ctx.author.id, exc)
            await ctx.respond("Your reminder could not be saved. Please try again later.", ephemeral=True)
            return

        await ctx.respond(
            f"Reminder set! I'll remind you {discord_timestamp(reminder.remind_at, 'R')} "
            f"({discord_timestamp(reminder.remind_at, 'F')}).\n\n"
            f"**Message:** {message}\n**Reminder ID:** `{reminder.id}`",
            ephemeral=True,
        )

    @commands.slash_command(name="reminders", description="List your active reminders")
    async def reminders(self, ctx: discord.ApplicationContext):
        try:
            owned = self.services.reminders.list_for_user(ctx.author.id)
        except StoreError as exc:
            logger.error("[REMINDER CMDS] Could not list reminders for %s: %s", ctx.author.id, exc)
            await ctx.respond(STORAGE_FAILURE_MESSAGE, ephemeral=True)
            return

        # Due ones may still be waiting for the next scheduler tick
        now = now_ms()
        pending = sorted((r for r in owned if not r.is_due(now)), key=lambda r: r.remind_at)
        if not pending:
            await ctx.respond("You have no active reminders.\n\nUse `/remind` to create one!", ephemeral=True)
            return

        await ctx.respond(embed=build_reminder_list_embed(pending), ephemeral=True)

    @commands.slash_command(name="cancelreminder", description="Cancel a reminder")
    @discord.option("id", str, description="The reminder ID (use /reminders to see your reminder IDs)")
    async def cancelreminder(self, ctx: discord.ApplicationContext, id: str):
        reminder_id = id.strip()
        try:
            match = next(
                (r for r in self.services.reminders.list_for_user(ctx.author.id) if r.id == reminder_id),
                None,
            )
            if match is None:
                await ctx.respond(
                    f"Could not find a reminder with ID `{reminder_id}`.\n\n"
                    "Use `/reminders` to see your active reminders and their IDs.",
                    ephemeral=True,
                )
                return
            cancelled = self.services.reminders.cancel(reminder_id, ctx.author.id)
        except StoreError as exc:
            logger.error("[REMINDER CMDS] Could not cancel reminder %s: %s", reminder_id, exc)
            await ctx.respond(STORAGE_FAILURE_MESSAGE, ephemeral=True)
            return

        if not cancelled:
            await ctx.respond(
                "Failed to cancel the reminder. It may have already been sent or deleted.",
                ephemeral=True,
            )
            return

        await ctx.respond(f"Reminder cancelled!\n\n**Message:** {match.message}", ephemeral=True)


def setup(discord_bot_instance, services: StewardServices):
    discord_bot_instance.add_cog(ReminderCog(discord_bot_instance, services))
