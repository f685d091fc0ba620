"""Poll scheduler: closes timed polls, tallies their reactions and posts the results.

Active polls live in the ``polls`` table as
``{"<guild id>": {"active": [ ... ]}}``. Only polls created with a duration
are stored. An expired poll is removed from its guild's active list after
one tally attempt, whether or not that attempt succeeded.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from steward.datatypes.discord_datatypes import GuildID
from steward.datatypes.schedule_datatypes import Poll, PollResult
from steward.delivery.discord_delivery import DeliveryAdapter
from steward.scheduler.poll_tally import POLL_EMOJIS, discount_bot_reaction, tally_votes
from steward.storage.errors import StoreError
from steward.storage.keyed_store import KeyedStore
from steward.ui.poll_embed import build_closed_poll_embed, build_poll_results_embed
from steward.util.format_utils import now_ms
from steward.util.logger import get_logger

logger = get_logger("poll_scheduler")

POLLS_TABLE = "polls"
ACTIVE_KEY = "active"


def _finished_key(raw: dict) -> tuple:
    """Identity of a stored poll; ids alone may collide."""
    end_time = raw.get("endTime")
    try:
        end_time = int(end_time)
    except (TypeError, ValueError):
        pass
    return str(raw.get("id")), str(raw.get("messageId")), end_time


class PollScheduler:
    """
    Owner of the polls table and of the periodic tally tick.

    Args:
        store: Keyed store holding the polls table.
        delivery: Chat-platform adapter used to read reactions and post results.
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

    def add(self, guild_id: GuildID | str | int, poll: Poll) -> Poll:
        """Start tracking a timed poll so the scheduler tallies it at ``end_time``."""
        if not 2 <= len(poll.options) <= len(POLL_EMOJIS):
            raise ValueError(f"A poll needs between 2 and {len(POLL_EMOJIS)} options")
        self.store.append_to_guild_array(POLLS_TABLE, str(guild_id), ACTIVE_KEY, poll.to_dict())
        logger.debug("[POLL SCHEDULER] Tracking poll %s in guild %s", poll.id, guild_id)
        return poll

    def active_polls(self, guild_id: GuildID | str | int) -> List[Poll]:
        raw = self.store.read_guild(POLLS_TABLE, str(guild_id)).get(ACTIVE_KEY, [])
        return self._parse(raw if isinstance(raw, list) else [])

    @staticmethod
    def _parse(raw_items: list) -> List[Poll]:
        polls = []
        for raw in raw_items:
            try:
                polls.append(Poll.from_dict(raw))
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("[POLL SCHEDULER] Skipping malformed poll %r: %s", raw, exc)
        return polls

    def _expired_by_guild(self, now: int) -> Dict[str, List[Poll]]:
        expired: Dict[str, List[Poll]] = {}
        for guild_id, guild_doc in self.store.read(POLLS_TABLE).items():
            if not isinstance(guild_doc, dict):
                continue
            active = guild_doc.get(ACTIVE_KEY)
            if not isinstance(active, list) or not active:
                continue
            due = [poll for poll in self._parse(active) if poll.is_expired(now)]
            if due:
                expired[guild_id] = due
        return expired

    async def tick(self) -> int:
        """
        Tally every expired poll and remove it from its guild's active list.

        Each poll is handled independently; a failure is logged and does not
        stop the rest of the batch.

        Returns:
            int: Number of expired polls that were closed.
        """
        async with self._tick_lock:
            now = self.clock()
            expired = await asyncio.to_thread(self._expired_by_guild, now)
            closed = 0

            for guild_id, polls in expired.items():
                for poll in polls:
                    try:
                        await self.tally_and_announce(guild_id, poll)
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        logger.error("[POLL SCHEDULER] Failed to tally poll %s: %s", poll.id, exc)

                finished = {_finished_key(poll.to_dict()) for poll in polls}
                try:
                    await asyncio.to_thread(
                        self.store.remove_from_guild_array,
                        POLLS_TABLE,
                        guild_id,
                        ACTIVE_KEY,
                        lambda raw: isinstance(raw, dict) and _finished_key(raw) in finished,
                    )
                except StoreError as exc:
                    # The results are already posted; the next tick will announce these polls again
                    logger.error(
                        "[POLL SCHEDULER] Could not remove %d closed poll(s) in guild %s: %s",
                        len(polls), guild_id, exc,
                    )
                    continue
                closed += len(polls)

            if closed:
                logger.info("[POLL SCHEDULER] Tallied %d poll(s)", closed)
            return closed

    async def tally(self, guild_id: GuildID | str, poll: Poll) -> Tuple[Any, PollResult]:
        """
        Fetch the poll message and count its votes.

        Returns:
            tuple: The fetched message and the computed :class:`PollResult`.

        Raises:
            Exception: Whatever the delivery adapter raises when the guild,
                channel or message cannot be resolved.
        """
        message = await self.delivery.fetch_message(guild_id, poll.channel_id, poll.message_id)
        counts = [
            discount_bot_reaction(self.delivery.get_reaction_count(message, POLL_EMOJIS[index]))
            for index in range(len(poll.options))
        ]
        return message, tally_votes(poll.options, counts)

    async def tally_and_announce(self, guild_id: GuildID | str, poll: Poll) -> Optional[PollResult]:
        """
        Tally a poll, post its results in the origin channel, and mark the
        original message as closed.

        Returns:
            PollResult | None: The result, or None when the poll message could
            not be resolved and nothing was posted.
        """
        try:
            message, result = await self.tally(guild_id, poll)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.info("[POLL SCHEDULER] Poll %s message %s unavailable, skipping tally: %s", poll.id, poll.message_id, exc)
            return None

        await self.delivery.send_channel_message(poll.channel_id, embed=build_poll_results_embed(poll, result))

        embeds = getattr(message, "embeds", None) or []
        if embeds:
            try:
                await self.delivery.edit_message(message, embed=build_closed_poll_embed(embeds[0]))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.debug("[POLL SCHEDULER] Could not mark poll %s as closed: %s", poll.id, exc)

        return result
