# tests/unit/services/test_read_state.py
import pytest
from datetime import timedelta

from collabchat.extensions import db
from collabchat.core.constants import ChannelType
from collabchat.core.database import utcnow
from collabchat.core.exceptions import ForbiddenChannel, ValidationError
from collabchat.models import ReadState
from collabchat.services.read_state import extract_mentions


@pytest.fixture
def team(services, alice, bob, login):
    """Private channel owned by alice with bob as member"""
    channel, _ = services.channels.create_channel(
        login(alice), "team", channel_type=ChannelType.PRIVATE.value, members=[bob.id]
    )
    return channel


def state_of(user, channel):
    return db.session.get(ReadState, (user.id, channel.id))


def test_extract_mentions():
    assert extract_mentions("hi @Bob and @alice@example.com.") == {"bob", "alice@example.com"}
    assert extract_mentions("no mentions here") == set()
    assert extract_mentions(None) == set()


def test_append_counts_unread_for_other_members(services, alice, bob, team, login):
    services.messages.append(login(alice), team.id, "one")
    services.messages.append(login(alice), team.id, "two")

    assert state_of(bob, team).unread_count == 2
    # The author's own messages never count
    assert state_of(alice, team) is None


def test_system_messages_do_not_count(services, bob, team):
    # The channel creation notice was the only message so far
    assert state_of(bob, team) is None


def test_mentions_are_counted(services, alice, bob, team, login):
    services.messages.append(login(alice), team.id, "@bob please look")
    services.messages.append(login(alice), team.id, "cc @bob@example.com")
    services.messages.append(login(alice), team.id, "nothing for you")

    state = state_of(bob, team)
    assert state.unread_count == 3
    assert state.unread_mentions == 2


def test_muted_members_are_not_counted(services, alice, bob, team, login):
    services.channels.update_preferences(
        login(bob), team.id, muted_until=utcnow() + timedelta(hours=1)
    )
    services.messages.append(login(alice), team.id, "shh")
    assert state_of(bob, team) is None


def test_notification_preference_does_not_change_counts(services, alice, bob, team, login):
    services.channels.update_preferences(login(bob), team.id, notification_preference="none")
    services.messages.append(login(alice), team.id, "still unread")
    assert state_of(bob, team).unread_count == 1


def test_mark_read_resets_counters(services, alice, bob, team, login):
    last = None
    for text in ("a", "@bob b", "c"):
        last = services.messages.append(login(alice), team.id, text)

    state = services.read_state.mark_read(login(bob), team.id)

    assert state["last_read_message_id"] == last.id
    assert state["unread_count"] == 0
    assert state["unread_mentions"] == 0


def test_mark_read_never_moves_backwards(services, alice, bob, team, login):
    first = services.messages.append(login(alice), team.id, "first")
    second = services.messages.append(login(alice), team.id, "second")
    identity = login(bob)

    services.read_state.mark_read(identity, team.id, second.id)
    state = services.read_state.mark_read(identity, team.id, first.id)

    assert state["last_read_message_id"] == second.id


def test_mark_read_clamps_to_latest_message(services, alice, bob, team, login):
    latest = services.messages.append(login(alice), team.id, "only")
    state = services.read_state.mark_read(login(bob), team.id, latest.id + 1000)
    assert state["last_read_message_id"] == latest.id


def test_mark_read_rejects_negative_ids(services, bob, team, login):
    with pytest.raises(ValidationError):
        services.read_state.mark_read(login(bob), team.id, -5)


def test_mark_read_requires_read_access(services, carol, special_user, team, login):
    with pytest.raises(ForbiddenChannel):
        services.read_state.mark_read(login(special_user), team.id)
    with pytest.raises(ForbiddenChannel):
        services.read_state.mark_read(login(carol), team.id)


def test_unread_summary(services, alice, bob, team, login):
    lounge, _ = services.channels.create_channel(login(alice), "lounge", members=[bob.id])
    services.messages.append(login(alice), team.id, "hey @bob")
    services.messages.append(login(alice), lounge.id, "coffee?")

    summary = services.read_state.unread_summary(login(bob))

    assert set(summary) == {team.id, lounge.id}
    assert summary[team.id]["unread"] == 1
    assert summary[team.id]["mentions"] == 1
    assert summary[lounge.id]["channel_name"] == "lounge"
    assert summary[lounge.id]["mentions"] == 0


def test_unread_summary_omits_read_and_archived_channels(services, alice, bob, team, login):
    lounge, _ = services.channels.create_channel(login(alice), "lounge", members=[bob.id])
    services.messages.append(login(alice), team.id, "one")
    services.messages.append(login(alice), lounge.id, "two")

    services.read_state.mark_read(login(bob), team.id)
    services.channels.update_channel(login(alice), lounge.id, {"is_archived": True})

    assert services.read_state.unread_summary(login(bob)) == {}


def test_unread_summary_after_leaving(services, alice, bob, team, login):
    services.messages.append(login(alice), team.id, "bye")
    services.channels.leave(login(bob), team.id)
    assert services.read_state.unread_summary(login(bob)) == {}


def test_private_channel_write_after_being_added(services, alice, bob, login):
    """A non-member cannot post until added; the owner then sees exactly one unread"""
    private, _ = services.channels.create_channel(
        login(alice), "private", channel_type=ChannelType.PRIVATE.value
    )

    with pytest.raises(ForbiddenChannel):
        services.messages.append(login(bob), private.id, "hello?")
    assert state_of(alice, private) is None

    services.channels.add_member(login(alice), private.id, bob.id)
    message = services.messages.append(login(bob), private.id, "hello!")

    assert message.channel_id == private.id
    assert state_of(alice, private).unread_count == 1
    assert services.read_state.unread_summary(login(alice))[private.id]["unread"] == 1
