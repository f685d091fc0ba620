import pytest

from steward.datatypes.discord_datatypes import DM_GUILD_ID, ChannelID, GuildID, UserID
from steward.datatypes.schedule_datatypes import Poll, Reminder


class TestSnowflake:
    def test_accepts_int_and_string(self):
        assert UserID(42) == UserID("42")
        assert str(UserID(" 42 ")) == "42"
        assert UserID(42).to_int() == 42

    def test_compares_with_plain_values(self):
        assert GuildID(7) == "7"
        assert GuildID(7) == 7

    def test_different_id_kinds_are_not_equal(self):
        assert UserID(1) != GuildID(1)

    @pytest.mark.parametrize("value", [True, -1, "-5", "abc", 1.5])
    def test_rejects_invalid_values(self, value):
        with pytest.raises(ValueError):
            ChannelID(value)

    def test_hashable_by_value(self):
        assert {UserID(5), UserID("5")} == {UserID(5)}
        assert repr(UserID(5)) == "UserID('5')"


class TestReminder:
    def _raw(self, **overrides):
        raw = {
            "id": "1700000000000-abc123def",
            "userId": "42",
            "message": "stretch",
            "channelId": "900",
            "guildId": "10",
            "createdAt": 1_700_000_000_000,
            "remindAt": 1_700_000_060_000,
        }
        raw.update(overrides)
        return raw

    def test_dict_form_uses_camel_case_keys(self):
        reminder = Reminder.from_dict(self._raw())

        assert reminder.user_id == "42"
        assert reminder.remind_at == 1_700_000_060_000
        assert reminder.to_dict() == self._raw()

    def test_missing_guild_defaults_to_dm(self):
        raw = self._raw()
        del raw["guildId"]

        assert Reminder.from_dict(raw).guild_id == DM_GUILD_ID

    def test_channel_may_be_absent(self):
        reminder = Reminder.from_dict(self._raw(channelId=None))

        assert reminder.channel_id is None

    @pytest.mark.parametrize("key", ["id", "userId", "remindAt"])
    def test_missing_required_key_raises(self, key):
        raw = self._raw()
        del raw[key]

        with pytest.raises(ValueError):
            Reminder.from_dict(raw)

    def test_due_at_or_after_remind_at(self):
        reminder = Reminder.from_dict(self._raw())

        assert not reminder.is_due(1_700_000_059_999)
        assert reminder.is_due(1_700_000_060_000)


class TestPoll:
    def _raw(self, **overrides):
        raw = {
            "id": "p1",
            "messageId": "555",
            "channelId": "900",
            "question": "Lunch?",
            "options": ["Pizza", "Sushi"],
            "anonymous": False,
            "createdBy": "42",
            "createdAt": 1_700_000_000_000,
            "endTime": 1_700_003_600_000,
        }
        raw.update(overrides)
        return raw

    def test_dict_form_round_trips(self):
        assert Poll.from_dict(self._raw()).to_dict() == self._raw()

    def test_anonymous_defaults_to_false(self):
        raw = self._raw()
        del raw["anonymous"]

        assert Poll.from_dict(raw).anonymous is False

    def test_options_must_be_a_list(self):
        with pytest.raises(ValueError):
            Poll.from_dict(self._raw(options="Pizza|Sushi"))

    def test_expired_once_end_time_reached(self):
        poll = Poll.from_dict(self._raw())

        assert not poll.is_expired(1_700_003_599_999)
        assert poll.is_expired(1_700_003_600_000)
