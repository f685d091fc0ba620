import asyncio
import threading

import pytest

from steward.datatypes.schedule_datatypes import Reminder
from steward.scheduler.reminder_scheduler import REMINDERS_KEY, REMINDERS_TABLE, ReminderScheduler
from steward.storage.errors import StoreTypeError

MINUTE = 60_000
HOUR = 60 * MINUTE


def make_reminder(clock, reminder_id="r1", user_id="42", *, delay=MINUTE, channel_id="900", message="stretch"):
    return Reminder(
        id=reminder_id,
        user_id=user_id,
        message=message,
        channel_id=channel_id,
        guild_id="10",
        created_at=clock(),
        remind_at=clock() + delay,
    )


@pytest.fixture()
def scheduler(store, delivery, clock):
    return ReminderScheduler(store, delivery, clock=clock)


def stored_ids(store):
    return [raw["id"] for raw in store.read(REMINDERS_TABLE).get(REMINDERS_KEY, [])]


class TestCommands:
    def test_add_appends_to_table(self, scheduler, store, clock):
        scheduler.add(make_reminder(clock, "r1"))
        scheduler.add(make_reminder(clock, "r2"))

        assert stored_ids(store) == ["r1", "r2"]
        assert store.read(REMINDERS_TABLE)[REMINDERS_KEY][0]["userId"] == "42"

    def test_cancel_twice(self, scheduler, store, clock):
        scheduler.add(make_reminder(clock, "r1"))

        assert scheduler.cancel("r1", "42") is True
        assert scheduler.cancel("r1", "42") is False
        assert stored_ids(store) == []

    def test_cancel_requires_ownership(self, scheduler, store, clock):
        scheduler.add(make_reminder(clock, "r1", user_id="42"))

        assert scheduler.cancel("r1", "99") is False
        assert stored_ids(store) == ["r1"]

    def test_cancel_miss_does_not_rewrite_table(self, scheduler, store, clock):
        scheduler.add(make_reminder(clock, "r1"))
        before = store.table_path(REMINDERS_TABLE).stat().st_mtime_ns

        assert scheduler.cancel("nope", "42") is False
        assert store.table_path(REMINDERS_TABLE).stat().st_mtime_ns == before

    def test_list_for_user_filters_by_owner(self, scheduler, clock):
        scheduler.add(make_reminder(clock, "mine", user_id="42"))
        scheduler.add(make_reminder(clock, "theirs", user_id="99"))

        assert [r.id for r in scheduler.list_for_user(42)] == ["mine"]

    def test_malformed_records_are_skipped(self, scheduler, store, clock):
        scheduler.add(make_reminder(clock, "good"))
        with store.transaction(REMINDERS_TABLE) as data:
            data[REMINDERS_KEY].append({"message": "no id or owner"})
            data[REMINDERS_KEY].append("not even a dict")

        assert [r.id for r in scheduler.all_reminders()] == ["good"]


class TestTick:
    @pytest.mark.asyncio
    async def test_nothing_due_does_nothing(self, scheduler, delivery, clock):
        scheduler.add(make_reminder(clock, "later", delay=10 * MINUTE))

        assert await scheduler.tick() == 0
        assert delivery.direct_messages == []

    @pytest.mark.asyncio
    async def test_due_reminder_is_delivered_by_dm_and_removed(self, scheduler, store, delivery, clock):
        scheduler.add(make_reminder(clock, "r1", message="drink water"))
        clock.advance(61_000)

        assert await scheduler.tick() == 1

        assert len(delivery.direct_messages) == 1
        sent = delivery.direct_messages[0]
        assert sent["user_id"] == "42"
        assert sent["embed"].description == "drink water"
        assert sent["embed"].footer.text == "Reminder ID: r1"
        assert delivery.channel_messages == []
        assert stored_ids(store) == []

    @pytest.mark.asyncio
    async def test_only_due_reminders_are_processed(self, scheduler, store, delivery, clock):
        scheduler.add(make_reminder(clock, "soon", delay=MINUTE))
        scheduler.add(make_reminder(clock, "exact", delay=2 * MINUTE))
        scheduler.add(make_reminder(clock, "later", delay=3 * MINUTE))
        clock.advance(2 * MINUTE)

        assert await scheduler.tick() == 2
        assert stored_ids(store) == ["later"]

    @pytest.mark.asyncio
    async def test_closed_dms_fall_back_to_origin_channel(self, scheduler, store, delivery, clock):
        delivery.blocked_dms.add("42")
        scheduler.add(make_reminder(clock, "r1", channel_id="900"))
        clock.advance(MINUTE)

        await scheduler.tick()

        assert delivery.direct_messages == []
        assert len(delivery.channel_messages) == 1
        assert delivery.channel_messages[0]["channel_id"] == "900"
        assert delivery.channel_messages[0]["content"] == "<@42>"
        assert stored_ids(store) == []

    @pytest.mark.asyncio
    async def test_undeliverable_reminder_is_dropped(self, scheduler, store, delivery, clock):
        delivery.blocked_dms.add("42")
        delivery.broken_channels.add("900")
        scheduler.add(make_reminder(clock, "r1", channel_id="900"))
        clock.advance(MINUTE)

        assert await scheduler.tick() == 1

        assert delivery.direct_messages == []
        assert delivery.channel_messages == []
        assert stored_ids(store) == []

    @pytest.mark.asyncio
    async def test_reminder_without_channel_is_dropped_when_dm_fails(self, scheduler, store, delivery, clock):
        delivery.blocked_dms.add("42")
        scheduler.add(make_reminder(clock, "r1", channel_id=None))
        clock.advance(MINUTE)

        await scheduler.tick()

        assert delivery.channel_messages == []
        assert stored_ids(store) == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_batch(self, scheduler, delivery, clock):
        delivery.blocked_dms.add("1")
        delivery.broken_channels.add("901")
        scheduler.add(make_reminder(clock, "bad", user_id="1", channel_id="901"))
        scheduler.add(make_reminder(clock, "good", user_id="2"))
        clock.advance(MINUTE)

        assert await scheduler.tick() == 2
        assert [dm["user_id"] for dm in delivery.direct_messages] == ["2"]

    @pytest.mark.asyncio
    async def test_reminder_added_during_delivery_is_kept(self, scheduler, store, delivery, clock):
        scheduler.add(make_reminder(clock, "due"))
        clock.advance(MINUTE)

        original_send = delivery.send_direct_message

        async def send_and_add(user_id, **kwargs):
            scheduler.add(make_reminder(clock, "new", delay=MINUTE))
            await original_send(user_id, **kwargs)

        delivery.send_direct_message = send_and_add

        await scheduler.tick()

        assert stored_ids(store) == ["new"]

    @pytest.mark.asyncio
    async def test_delivery_happens_at_most_once(self, scheduler, delivery, clock):
        scheduler.add(make_reminder(clock, "r1"))
        clock.advance(MINUTE)

        await scheduler.tick()
        await scheduler.tick()

        assert len(delivery.direct_messages) == 1

    @pytest.mark.asyncio
    async def test_overlapping_ticks_deliver_once(self, scheduler, delivery, clock):
        scheduler.add(make_reminder(clock, "r1"))
        clock.advance(MINUTE)

        await asyncio.gather(scheduler.tick(), scheduler.tick())

        assert len(delivery.direct_messages) == 1


class TestStoredShape:
    def test_add_refuses_to_replace_a_non_list_value(self, scheduler, store, clock):
        store.write(REMINDERS_TABLE, {REMINDERS_KEY: {"legacy": "data"}})

        with pytest.raises(StoreTypeError):
            scheduler.add(make_reminder(clock))

        assert store.read(REMINDERS_TABLE) == {REMINDERS_KEY: {"legacy": "data"}}

    @pytest.mark.asyncio
    async def test_pending_reminder_sharing_an_id_survives_the_tick(self, scheduler, store, delivery, clock):
        scheduler.add(make_reminder(clock, "dup", delay=0))
        scheduler.add(make_reminder(clock, "dup", delay=HOUR))

        assert await scheduler.tick() == 1

        remaining = store.read(REMINDERS_TABLE)[REMINDERS_KEY]
        assert len(remaining) == 1
        assert remaining[0]["remindAt"] == clock() + HOUR
        assert len(delivery.direct_messages) == 1

    @pytest.mark.asyncio
    async def test_tick_writes_the_table_off_the_event_loop_thread(self, scheduler, store, clock, monkeypatch):
        scheduler.add(make_reminder(clock, "r1", delay=0))
        writer_threads = []
        original_modify = store.modify

        def modify(table, mutator):
            writer_threads.append(threading.get_ident())
            return original_modify(table, mutator)

        monkeypatch.setattr(store, "modify", modify)

        await scheduler.tick()

        assert writer_threads
        assert threading.get_ident() not in writer_threads
