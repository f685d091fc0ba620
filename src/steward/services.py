"""Wiring of the store, delivery adapter and schedulers shared by the cogs."""

from __future__ import annotations

from dataclasses import dataclass

import discord

from steward.configuration.app_configuration import AppConfig
from steward.delivery.discord_delivery import DiscordDeliveryAdapter
from steward.scheduler.poll_scheduler import PollScheduler
from steward.scheduler.reminder_scheduler import ReminderScheduler
from steward.storage.keyed_store import KeyedStore


@dataclass(slots=True)
class StewardServices:
    config: AppConfig
    store: KeyedStore
    reminders: ReminderScheduler
    polls: PollScheduler


def build_services(bot: discord.Bot, config: AppConfig) -> StewardServices:
    """Construct one store and one scheduler of each kind around ``bot``."""
    store = KeyedStore(config.data_dir, fail_open=config.storage_fail_open)
    delivery = DiscordDeliveryAdapter(bot)
    return StewardServices(
        config=config,
        store=store,
        reminders=ReminderScheduler(store, delivery),
        polls=PollScheduler(store, delivery),
    )
