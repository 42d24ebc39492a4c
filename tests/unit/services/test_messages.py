# tests/unit/services/test_messages.py
import pytest

from collabchat.core.constants import ChannelType, DELETED_MESSAGE_PLACEHOLDER
from collabchat.core.exceptions import (
    ForbiddenChannel,
    ForbiddenTenant,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from collabchat.services.messages import parse_id


@pytest.fixture
def general(services, alice, login):
    channel, _ = services.channels.create_channel(login(alice), "general")
    return channel


@pytest.fixture
def secret(services, alice, login):
    channel, _ = services.channels.create_channel(
        login(alice), "secret", channel_type=ChannelType.PRIVATE.value
    )
    return channel


def test_append_assigns_increasing_ids(services, alice, general, login):
    identity = login(alice)
    first = services.messages.append(identity, general.id, "hello")
    second = services.messages.append(identity, general.id, "world")

    assert second.id > first.id
    assert first.tenant_id == general.tenant_id
    assert first.user_id == alice.id


def test_consecutive_appends_get_consecutive_ids(services, alice, general, login):
    identity = login(alice)
    messages = [services.messages.append(identity, general.id, text) for text in ("a", "b", "c")]

    first = messages[0].id
    assert [m.id for m in messages] == [first, first + 1, first + 2]

    listed = services.messages.list(identity, general.id).messages
    assert [m.id for m in listed][-3:] == [first, first + 1, first + 2]
    assert [m.content for m in listed][-3:] == ["a", "b", "c"]


def test_append_sanitizes_markup(services, alice, general, login):
    message = services.messages.append(
        login(alice), general.id, "<script>alert(1)</script><strong>hi</strong>"
    )
    assert "<script>" not in message.content
    assert "<strong>hi</strong>" in message.content


@pytest.mark.parametrize("content", [None, "", "   ", "<script></script>", 42])
def test_append_rejects_empty_content(services, alice, general, login, content):
    with pytest.raises(ValidationError):
        services.messages.append(login(alice), general.id, content)


def test_append_rejects_oversized_content(app, services, alice, general, login):
    app.config["CHAT_MAX_MESSAGE_LENGTH"] = 10
    with pytest.raises(ValidationError):
        services.messages.append(login(alice), general.id, "x" * 11)


def test_append_requires_write_access(services, bob, carol, secret, general, login):
    with pytest.raises(ForbiddenChannel):
        services.messages.append(login(bob), secret.id, "let me in")
    with pytest.raises(ForbiddenChannel):
        services.messages.append(login(carol), general.id, "wrong tenant")


def test_append_without_tenant_is_refused(services, admin_user, general, login):
    with pytest.raises(ForbiddenTenant):
        services.messages.append(login(admin_user), general.id, "hello")


def test_append_wakes_notifier(services, alice, general, login):
    before = services.notifier.generation(general.tenant_id)
    services.messages.append(login(alice), general.id, "ping")
    assert services.notifier.generation(general.tenant_id) == before + 1


def test_thread_reply(services, alice, bob, general, login):
    parent = services.messages.append(login(alice), general.id, "question")
    reply = services.messages.append(login(bob), general.id, "answer", parent_id=parent.id)

    assert reply.parent_message_id == parent.id
    top_level = services.messages.list(login(alice), general.id).messages
    assert reply.id not in [m.id for m in top_level]
    thread = services.messages.list(login(alice), general.id, parent_id=parent.id).messages
    assert [m.id for m in thread] == [reply.id]


def test_thread_reply_parent_must_be_in_channel(services, alice, general, secret, login):
    identity = login(alice)
    elsewhere = services.messages.append(identity, secret.id, "private")
    with pytest.raises(ValidationError):
        services.messages.append(identity, general.id, "reply", parent_id=elsewhere.id)
    with pytest.raises(ValidationError):
        services.messages.append(identity, general.id, "reply", parent_id=999999)


def test_reply_to_deleted_parent_is_allowed(services, alice, bob, general, login):
    """A deleted message hides its content but keeps its thread open"""
    parent = services.messages.append(login(alice), general.id, "question")
    services.messages.delete(login(alice), parent.id)

    reply = services.messages.append(login(bob), general.id, "late answer", parent_id=parent.id)

    assert reply.parent_message_id == parent.id


def test_list_reports_reply_counts(services, alice, general, login):
    identity = login(alice)
    parent = services.messages.append(identity, general.id, "question")
    quiet = services.messages.append(identity, general.id, "statement")
    services.messages.append(identity, general.id, "answer one", parent_id=parent.id)
    reply = services.messages.append(identity, general.id, "answer two", parent_id=parent.id)
    services.messages.delete(identity, reply.id)

    page = services.messages.list(identity, general.id)

    assert page.reply_counts == {parent.id: 2}
    assert quiet.id not in page.reply_counts
    assert services.messages.reply_counts([]) == {}


def test_list_returns_latest_page_oldest_first(services, alice, general, login):
    identity = login(alice)
    ids = [services.messages.append(identity, general.id, f"m{i}").id for i in range(5)]

    page = services.messages.list(identity, general.id, limit=3)

    assert [m.id for m in page.messages] == ids[-3:]
    assert page.has_more is True
    assert page.next_before == ids[-3]


def test_list_pages_backwards_with_before(services, alice, general, login):
    identity = login(alice)
    ids = [services.messages.append(identity, general.id, f"m{i}").id for i in range(5)]

    page = services.messages.list(identity, general.id, before=ids[2], limit=10)

    # Creation system message plus the two oldest appends
    assert [m.id for m in page.messages][-2:] == ids[:2]
    assert page.has_more is False
    assert page.next_before is None


def test_list_limit_is_clamped(app, services, alice, general, login):
    app.config["CHAT_MESSAGES_MAX_PAGE_SIZE"] = 2
    identity = login(alice)
    for i in range(4):
        services.messages.append(identity, general.id, f"m{i}")

    assert len(services.messages.list(identity, general.id, limit=100).messages) == 2


@pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": "ten"}, {"before": "abc"}, {"before": -1}])
def test_list_rejects_bad_arguments(services, alice, general, login, kwargs):
    with pytest.raises(ValidationError):
        services.messages.list(login(alice), general.id, **kwargs)


def test_list_requires_read_access(services, bob, secret, login):
    with pytest.raises(ForbiddenChannel):
        services.messages.list(login(bob), secret.id)


def test_edit_by_author(services, alice, general, login):
    identity = login(alice)
    message = services.messages.append(identity, general.id, "helo")

    edited = services.messages.edit(identity, message.id, "hello")

    assert edited.content == "hello"
    assert edited.is_edited is True
    assert edited.edited_at is not None


def test_edit_by_someone_else_is_refused(services, alice, bob, general, login):
    message = services.messages.append(login(alice), general.id, "mine")
    with pytest.raises(PermissionDenied):
        services.messages.edit(login(bob), message.id, "yours now")


def test_delete_is_logical(services, alice, general, login):
    identity = login(alice)
    message = services.messages.append(identity, general.id, "oops")

    services.messages.delete(identity, message.id)

    page = services.messages.list(identity, general.id)
    deleted = [m for m in page.messages if m.id == message.id][0]
    assert deleted.is_deleted is True
    assert deleted.to_dict()["content"] == DELETED_MESSAGE_PLACEHOLDER
    with pytest.raises(ValidationError):
        services.messages.edit(identity, message.id, "undo")


def test_channel_manager_can_delete_others_messages(services, alice, bob, general, login):
    message = services.messages.append(login(bob), general.id, "spam")
    assert services.messages.delete(login(alice), message.id).is_deleted is True


def test_member_cannot_delete_others_messages(services, alice, bob, general, login):
    message = services.messages.append(login(alice), general.id, "keep")
    with pytest.raises(PermissionDenied):
        services.messages.delete(login(bob), message.id)


def test_messages_of_hidden_channels_are_not_found(services, alice, bob, carol, secret, login):
    message = services.messages.append(login(alice), secret.id, "hidden")
    with pytest.raises(NotFound):
        services.messages.delete(login(bob), message.id)
    with pytest.raises(NotFound):
        services.messages.edit(login(carol), message.id, "hidden")


def test_last_message_id(services, alice, bob, general, secret, login):
    identity = login(alice)
    services.messages.append(identity, general.id, "public")
    latest = services.messages.append(identity, secret.id, "private")

    assert services.messages.last_message_id(identity) == latest.id
    assert services.messages.last_message_id(identity, secret.id) == latest.id
    # Bob joined nothing
    assert services.messages.last_message_id(login(bob)) == 0


def test_fetch_since_only_returns_joined_channels(services, alice, bob, general, secret, login):
    services.channels.join(login(bob), general.id)
    cursor = services.messages.last_message_id(login(bob))
    visible = services.messages.append(login(alice), general.id, "for everyone")
    services.messages.append(login(alice), secret.id, "for alice only")

    messages = services.messages.fetch_since(login(bob), cursor)

    assert [m.id for m in messages] == [visible.id]


def test_fetch_since_is_tenant_scoped(services, special_user, carol, tenant_two, login):
    carol_identity = login(carol)
    other, _ = services.channels.create_channel(carol_identity, "globex-general")
    services.channels.add_member(carol_identity, other.id, special_user.id)
    services.messages.append(carol_identity, other.id, "hi")

    # Still in tenant one
    assert services.messages.fetch_since(login(special_user), 0) == []


@pytest.mark.parametrize("value,expected", [(None, None), ("", None), ("7", 7), (3, 3)])
def test_parse_id(value, expected):
    assert parse_id(value, "since_id") == expected


@pytest.mark.parametrize("value", ["x", "-2", -1, "1.5"])
def test_parse_id_rejects_invalid(value):
    with pytest.raises(ValidationError):
        parse_id(value, "since_id")
