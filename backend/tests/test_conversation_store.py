"""Conversation store contract, run against both backends."""

import asyncio
from uuid import uuid4

import pytest

from echo_api.errors import BadRequest, Forbidden, NotFound
from echo_api.storage.base import DEFAULT_TITLE, ChatRole


async def test_create_conversation_starts_empty(any_storage):
    owner = uuid4()
    conversation = await any_storage.conversations.create_conversation(owner, "What is 2+2?")

    assert conversation.owner_id == owner
    assert conversation.title == "What is 2+2?"
    assert conversation.messages == []
    assert conversation.last_activity == conversation.created_at


async def test_blank_title_gets_default(any_storage):
    conversation = await any_storage.conversations.create_conversation(uuid4(), "   ")
    assert conversation.title == DEFAULT_TITLE


async def test_append_keeps_order_and_bumps_activity(any_storage):
    store = any_storage.conversations
    conversation = await store.create_conversation(uuid4(), "hello")

    first = await store.append_message(conversation.id, ChatRole.USER, "What is 2+2?")
    second = await store.append_message(conversation.id, "ai", "4")

    assert (first.position, second.position) == (0, 1)
    assert second.role is ChatRole.ASSISTANT

    loaded = await store.get_conversation(conversation.id)
    assert [(m.role, m.text) for m in loaded.messages] == [
        (ChatRole.USER, "What is 2+2?"),
        (ChatRole.ASSISTANT, "4"),
    ]
    assert loaded.last_activity == second.created_at
    assert loaded.last_activity >= loaded.created_at


async def test_append_rejects_unknown_role(any_storage):
    conversation = await any_storage.conversations.create_conversation(uuid4(), "x")
    with pytest.raises(BadRequest):
        await any_storage.conversations.append_message(conversation.id, "system", "nope")


async def test_missing_conversation_raises_not_found(any_storage):
    store = any_storage.conversations
    missing = uuid4()

    with pytest.raises(NotFound):
        await store.get_conversation(missing)
    with pytest.raises(NotFound):
        await store.append_message(missing, ChatRole.USER, "hi")
    with pytest.raises(NotFound):
        await store.rename_conversation(missing, "title")
    with pytest.raises(NotFound):
        await store.delete_conversation(missing, uuid4())


async def test_list_summaries_most_recent_first(any_storage):
    store = any_storage.conversations
    owner = uuid4()
    older = await store.create_conversation(owner, "older")
    await asyncio.sleep(0.01)
    newer = await store.create_conversation(owner, "newer")
    await store.create_conversation(uuid4(), "someone else's")

    summaries = await store.list_summaries(owner)
    assert [s.id for s in summaries] == [newer.id, older.id]

    # Activity on the older conversation moves it to the top
    await asyncio.sleep(0.01)
    await store.append_message(older.id, ChatRole.USER, "bump")
    summaries = await store.list_summaries(owner)
    assert [s.title for s in summaries] == ["older", "newer"]


async def test_list_summaries_for_unknown_owner_is_empty(any_storage):
    assert await any_storage.conversations.list_summaries(uuid4()) == []


async def test_rename_conversation(any_storage):
    store = any_storage.conversations
    conversation = await store.create_conversation(uuid4(), "provisional")
    await store.append_message(conversation.id, ChatRole.USER, "hi")

    renamed = await store.rename_conversation(conversation.id, "  Greeting Exchange ")
    assert renamed.title == "Greeting Exchange"
    assert len(renamed.messages) == 1

    renamed = await store.rename_conversation(conversation.id, "")
    assert renamed.title == DEFAULT_TITLE


async def test_delete_requires_owner(any_storage):
    store = any_storage.conversations
    owner = uuid4()
    conversation = await store.create_conversation(owner, "mine")
    await store.append_message(conversation.id, ChatRole.USER, "secret")

    with pytest.raises(Forbidden):
        await store.delete_conversation(conversation.id, uuid4())
    assert (await store.get_conversation(conversation.id)).messages

    await store.delete_conversation(conversation.id, owner)
    with pytest.raises(NotFound):
        await store.get_conversation(conversation.id)
    assert await store.list_summaries(owner) == []


async def test_returned_conversation_is_a_copy(storage):
    store = storage.conversations
    conversation = await store.create_conversation(uuid4(), "x")
    conversation.messages.append("garbage")

    assert (await store.get_conversation(conversation.id)).messages == []


async def test_concurrent_appends_get_distinct_positions(storage):
    store = storage.conversations
    conversation = await store.create_conversation(uuid4(), "busy")

    messages = await asyncio.gather(
        *(store.append_message(conversation.id, ChatRole.USER, f"m{i}") for i in range(50))
    )

    assert sorted(m.position for m in messages) == list(range(50))
    loaded = await store.get_conversation(conversation.id)
    assert [m.position for m in loaded.messages] == list(range(50))


async def test_provision_creates_then_finds_user(any_storage):
    users = any_storage.users

    user, created = await users.provision(email="Ada@Example.com ", name="Ada")
    assert created
    assert user.email == "ada@example.com"

    again, created = await users.provision(email="ada@example.com", name="Ada Lovelace")
    assert not created
    assert again.id == user.id
    assert again.name == "Ada Lovelace"

    assert (await users.get_user(user.id)).name == "Ada Lovelace"
    assert await users.get_user(uuid4()) is None


async def test_provision_links_external_id(any_storage):
    users = any_storage.users
    user, _ = await users.provision(email="grace@example.com", name="Grace")

    linked, created = await users.provision(
        email="grace@example.com", name="Grace", external_id="firebase-uid-1"
    )
    assert not created
    assert linked.id == user.id
    assert linked.external_id == "firebase-uid-1"

    # Lookup by external id wins even if the email changed upstream
    same, created = await users.provision(
        email="grace.hopper@example.com", name="Grace", external_id="firebase-uid-1"
    )
    assert not created
    assert same.id == user.id


async def test_provision_caps_long_display_names(any_storage):
    user, _ = await any_storage.users.provision(email="long@example.com", name="x" * 60)
    assert user.name == "x" * 50

    again, created = await any_storage.users.provision(email="long@example.com", name="y" * 60)
    assert not created
    assert again.name == "y" * 50
