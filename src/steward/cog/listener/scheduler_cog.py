"""Background scheduler cogs for Steward.

Contains two cogs:
- ReminderSchedulerCog – polls the reminders table and delivers due reminders
- PollSchedulerCog     – polls the polls table and closes expired polls

Both loops start once the bot is ready, tick immediately, then tick again
every configured interval. State lives in the keyed store, so restarts only
delay work that was already due.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import discord
from discord.ext import commands, tasks

from steward.services import StewardServices
from steward.util.logger import get_logger

logger = get_logger("scheduler_cog")


class _IntervalTickCog(commands.Cog):
    """
    Reusable base for cogs that call one async tick on a fixed interval.

    Subclasses supply:
        _name      – tag used in log messages
        _interval  – seconds between ticks
        _tick      – async callable doing the real work
    """

    _name: str
    _interval: float
    _tick: Callable[[], Awaitable[int]]

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    @tasks.loop(seconds=30)  # real interval set in on_ready
    async def _tick_task(self) -> None:
        try:
            await self._tick()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[%s] Tick failed: %s", self._name, exc)

    @_tick_task.before_loop
    async def _before_tick(self) -> None:
        await self.bot.wait_until_ready()

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        self._tick_task.change_interval(seconds=self._interval)
        if not self._tick_task.is_running():
            self._tick_task.start()
            logger.info("[%s] Started (interval=%.1fs)", self._name, self._interval)

    def cog_unload(self) -> None:
        self._tick_task.cancel()
        logger.info("[%s] Stopped", self._name)


class ReminderSchedulerCog(_IntervalTickCog):
    """Delivers due reminders every ``reminders.check_interval_seconds``."""

    _name = "REMINDER_SCHEDULER"

    def __init__(self, bot: discord.Bot, services: StewardServices) -> None:
        super().__init__(bot)
        self._interval = services.config.reminder_check_interval
        self._tick = services.reminders.tick


class PollSchedulerCog(_IntervalTickCog):
    """Closes expired polls every ``polls.check_interval_seconds``."""

    _name = "POLL_SCHEDULER"

    def __init__(self, bot: discord.Bot, services: StewardServices) -> None:
        super().__init__(bot)
        self._interval = services.config.poll_check_interval
        self._tick = services.polls.tick


def setup(bot: discord.Bot, services: StewardServices) -> None:
    bot.add_cog(ReminderSchedulerCog(bot, services))
    bot.add_cog(PollSchedulerCog(bot, services))
