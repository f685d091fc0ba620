"""Reminder scheduler: stores pending reminders and delivers the ones that fall due.

Reminders live in the ``reminders`` table as ``{"reminders": [ ... ]}``. A
reminder that is present is pending; one that is absent has been delivered,
dropped after a failed delivery, or cancelled. Delivery is best-effort and
at-most-once: a due reminder is removed after its delivery attempt whatever
the outcome.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, List, Optional

from steward.datatypes.discord_datatypes import UserID
from steward.datatypes.schedule_datatypes import Reminder
from steward.delivery.discord_delivery import DeliveryAdapter
from steward.storage.errors import StoreTypeError
from steward.storage.keyed_store import KeyedStore
from steward.ui.reminder_embed import build_reminder_embed
from steward.util.format_utils import now_ms
from steward.util.logger import get_logger

logger = get_logger("reminder_scheduler")

REMINDERS_TABLE = "reminders"
REMINDERS_KEY = "reminders"


def _handled_key(raw: dict) -> tuple:
    """Identity of a stored reminder; ids alone may collide."""
    remind_at = raw.get("remindAt")
    try:
        remind_at = int(remind_at)
    except (TypeError, ValueError):
        pass
    return str(raw.get("id")), str(raw.get("userId")), remind_at


class ReminderScheduler:
    """
    Owner of the reminders table and of the periodic delivery tick.

    Args:
        store: Keyed store holding the reminders table.
        delivery: Chat-platform adapter used to send the notifications.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        store: KeyedStore,
        delivery: DeliveryAdapter,
        *,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.store = store
        self.delivery = delivery
        self.clock = clock or now_ms
        self._tick_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Table access
    # ------------------------------------------------------------------

    def _raw_reminders(self) -> list:
        raw = self.store.read(REMINDERS_TABLE).get(REMINDERS_KEY, [])
        return raw if isinstance(raw, list) else []

    @staticmethod
    def _parse(raw_items: Iterable[object]) -> List[Reminder]:
        reminders = []
        for raw in raw_items:
            try:
                reminders.append(Reminder.from_dict(raw))  # type: ignore[arg-type]
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("[REMINDER SCHEDULER] Skipping malformed reminder %r: %s", raw, exc)
        return reminders

    def all_reminders(self) -> List[Reminder]:
        return self._parse(self._raw_reminders())

    # ------------------------------------------------------------------
    # Operations used by the command layer
    # ------------------------------------------------------------------

    def add(self, reminder: Reminder) -> Reminder:
        """Append a reminder. Duration bounds and message checks are the caller's job."""
        with self.store.transaction(REMINDERS_TABLE) as data:
            items = data.setdefault(REMINDERS_KEY, [])
            if not isinstance(items, list):
                raise StoreTypeError(
                    REMINDERS_TABLE, f"'{REMINDERS_KEY}' holds {type(items).__name__}, expected a list"
                )
            items.append(reminder.to_dict())
        logger.debug("[REMINDER SCHEDULER] Added reminder %s for user %s", reminder.id, reminder.user_id)
        return reminder

    def cancel(self, reminder_id: str, user_id: UserID | str | int) -> bool:
        """
        Remove a reminder if both its id and its owner match.

        Returns:
            bool: True if a reminder was removed. The table is left untouched otherwise.
        """
        owner = str(user_id)

        def remove_first_match(data: dict) -> bool:
            items = data.get(REMINDERS_KEY)
            if not isinstance(items, list):
                return False
            for index, raw in enumerate(items):
                if isinstance(raw, dict) and str(raw.get("id")) == str(reminder_id) and str(raw.get("userId")) == owner:
                    del items[index]
                    return True
            return False

        cancelled = self.store.modify(REMINDERS_TABLE, remove_first_match)
        if cancelled:
            logger.debug("[REMINDER SCHEDULER] Cancelled reminder %s for user %s", reminder_id, owner)
        return cancelled

    def list_for_user(self, user_id: UserID | str | int) -> List[Reminder]:
        """Every stored reminder owned by ``user_id``, in table order."""
        owner = str(user_id)
        return [reminder for reminder in self.all_reminders() if reminder.user_id == owner]

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> int:
        """
        Deliver every due reminder, then drop them from the table.

        The table is re-read when persisting and only the delivered records
        (matched by id, owner and due time) are removed, so reminders added
        or cancelled by commands while deliveries were running are kept as
        the commands left them. Store access runs in a worker thread.

        Returns:
            int: Number of due reminders that were processed.
        """
        async with self._tick_lock:
            now = self.clock()
            reminders = await asyncio.to_thread(self.all_reminders)
            due = [reminder for reminder in reminders if reminder.is_due(now)]
            if not due:
                return 0

            delivered = 0
            for reminder in due:
                if await self.deliver(reminder):
                    delivered += 1

            handled = {_handled_key(reminder.to_dict()) for reminder in due}

            def drop_handled(data: dict) -> bool:
                items = data.get(REMINDERS_KEY)
                if not isinstance(items, list):
                    return False
                kept = [raw for raw in items if not (isinstance(raw, dict) and _handled_key(raw) in handled)]
                data[REMINDERS_KEY] = kept
                return len(kept) != len(items)

            await asyncio.to_thread(self.store.modify, REMINDERS_TABLE, drop_handled)

            logger.info(
                "[REMINDER SCHEDULER] Processed %d due reminder(s), %d delivered",
                len(due), delivered,
            )
            return len(due)

    async def deliver(self, reminder: Reminder) -> bool:
        """
        Send one reminder: DM the owner, falling back to the origin channel.

        Returns:
            bool: True if either channel accepted the message. False means the
            reminder is dropped; it is never retried.
        """
        embed = build_reminder_embed(reminder)

        try:
            await self.delivery.send_direct_message(reminder.user_id, embed=embed)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.info("[REMINDER SCHEDULER] Could not DM user %s (%s), trying channel", reminder.user_id, exc)

        if not reminder.channel_id:
            logger.warning("[REMINDER SCHEDULER] Reminder %s has no origin channel; dropped", reminder.id)
            return False

        try:
            await self.delivery.send_channel_message(
                reminder.channel_id,
                content=f"<@{reminder.user_id}>",
                embed=embed,
            )
            return True
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "[REMINDER SCHEDULER] Could not send reminder %s to channel %s: %s; dropped",
                reminder.id, reminder.channel_id, exc,
            )
            return False
