import asyncio

import pytest

from direct_messages.exceptions import PartialWriteFailure, StoreUnavailable, ValidationFailed
from direct_messages.services.session import ChatSession
from fakes import GatedChatService


@pytest.fixture
def session(service):
    return ChatSession(service, "alice")


async def test_select_shows_thread_and_clears_badge(session, message_repo):
    message_repo.add("bob", "alice", "one")
    message_repo.add("bob", "alice", "two")
    message_repo.add("alice", "bob", "three")

    await session.refresh_conversations()
    assert session.conversations[0].unread_count == 2

    await session.select_conversation("bob")

    assert session.selected_partner_id == "bob"
    assert [m.body for m in session.messages] == ["one", "two", "three"]
    assert session.selected_conversation.unread_count == 0
    assert session.selected_conversation.partner_display_name == "Bob"
    assert session.last_error is None


async def test_select_reloads_thread_after_mark_read(session, message_repo):
    message_repo.add("bob", "alice", "one")
    message_repo.add("alice", "bob", "two")

    await session.select_conversation("bob")

    assert message_repo.calls[-1] == "list_thread"
    assert [(m.body, m.read) for m in session.messages] == [("one", True), ("two", False)]
    assert message_repo.unread_from("alice", "bob") == 0


async def test_thread_reload_for_old_selection_is_discarded(message_repo, user_repo):
    service = GatedChatService(message_repo, user_repo)
    session = ChatSession(service, "alice")
    message_repo.add("bob", "alice", "from bob")
    message_repo.add("carol", "alice", "from carol")

    # bob's first load passes, the list refresh after mark-read is held
    gate = asyncio.Event()
    service.list_gates.append(gate)
    slow = asyncio.create_task(session.select_conversation("bob"))
    await asyncio.sleep(0)

    await session.select_conversation("carol")
    gate.set()
    await slow

    assert session.selected_partner_id == "carol"
    assert [m.body for m in session.messages] == ["from carol"]


async def test_submit_clears_draft_and_refreshes(session, message_repo):
    message_repo.add("bob", "alice", "hello")
    await session.select_conversation("bob")
    session.draft = "  hi bob  "

    sent = await session.submit()

    assert sent.body == "hi bob"
    assert session.draft == ""
    assert [m.body for m in session.messages] == ["hello", "hi bob"]
    assert session.conversations[0].last_message_body == "hi bob"
    assert session.sending is False


async def test_blank_submit_keeps_draft(session, message_repo):
    await session.select_conversation("bob")

    with pytest.raises(ValidationFailed):
        await session.submit("   ")

    assert session.draft == "   "
    assert session.last_error.code == "validation_failed"
    assert message_repo.rows == []


async def test_submit_without_selection_is_refused(session, message_repo):
    with pytest.raises(ValidationFailed):
        await session.submit("hi")

    assert session.draft == "hi"
    assert "insert_message" not in message_repo.calls


async def test_store_failure_keeps_draft(session, message_repo):
    await session.select_conversation("bob")
    message_repo.fail["insert_message"] = PartialWriteFailure("insert_message rejected by store")

    with pytest.raises(PartialWriteFailure):
        await session.submit("important words")

    assert session.draft == "important words"
    assert session.messages == []
    assert session.last_error.code == "write_failed"
    assert session.sending is False


async def test_submit_while_sending_keeps_new_draft(message_repo, user_repo):
    service = GatedChatService(message_repo, user_repo)
    session = ChatSession(service, "alice")
    await session.select_conversation("bob")

    service.send_gate = asyncio.Event()
    first = asyncio.create_task(session.submit("first"))
    await asyncio.sleep(0)
    assert session.sending is True

    with pytest.raises(ValidationFailed):
        await session.submit("second draft")
    assert session.draft == "second draft"

    service.send_gate.set()
    sent = await first

    assert sent.body == "first"
    assert session.draft == "second draft"
    assert [r["body"] for r in message_repo.rows] == ["first"]


async def test_no_user_refuses_everything(service, message_repo):
    session = ChatSession(service, None)

    with pytest.raises(ValidationFailed):
        await session.refresh_conversations()
    with pytest.raises(ValidationFailed):
        await session.select_conversation("bob")
    with pytest.raises(ValidationFailed):
        await session.submit("hi")

    assert message_repo.calls == []


async def test_degraded_refresh_shows_nothing_stale(session, message_repo):
    message_repo.add("bob", "alice", "one")
    await session.refresh_conversations()
    assert len(session.conversations) == 1

    message_repo.fail["list_involving"] = StoreUnavailable("list_involving failed")
    await session.refresh_conversations()

    assert session.conversations == []
    assert session.last_error.code == "store_unavailable"


async def test_failed_thread_load_does_not_mark_read(session, message_repo):
    message_repo.add("bob", "alice", "one")
    message_repo.fail["list_thread"] = StoreUnavailable("list_thread failed")

    await session.select_conversation("bob")

    assert session.messages == []
    assert session.last_error.code == "store_unavailable"
    assert message_repo.unread_from("alice", "bob") == 1


async def test_stale_thread_is_discarded(message_repo, user_repo):
    service = GatedChatService(message_repo, user_repo)
    session = ChatSession(service, "alice")
    message_repo.add("bob", "alice", "from bob")
    message_repo.add("carol", "alice", "from carol")

    gate = asyncio.Event()
    service.gates["bob"] = gate
    slow = asyncio.create_task(session.select_conversation("bob"))
    await asyncio.sleep(0)

    await session.select_conversation("carol")
    gate.set()
    await slow

    assert session.selected_partner_id == "carol"
    assert [m.body for m in session.messages] == ["from carol"]
    # bob's thread was never shown, so that message stays unread
    assert message_repo.unread_from("alice", "bob") == 1
    assert message_repo.unread_from("alice", "carol") == 0


async def test_stale_conversation_list_is_discarded(message_repo, user_repo):
    service = GatedChatService(message_repo, user_repo)
    session = ChatSession(service, "alice")
    message_repo.add("bob", "alice", "one")

    gate = asyncio.Event()
    service.list_gates.append(gate)
    slow = asyncio.create_task(session.refresh_conversations())
    await asyncio.sleep(0)

    message_repo.add("carol", "alice", "two")
    await session.refresh_conversations()
    gate.set()
    await slow

    assert [c.partner_id for c in session.conversations] == ["carol", "bob"]
