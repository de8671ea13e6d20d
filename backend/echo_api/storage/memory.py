"""
In-memory storage backend.

Used when no database is configured or the database is unreachable at startup.
Data lives for the lifetime of the process. A single asyncio.Lock per store
makes every mutation atomic with respect to other coroutines.
"""

import asyncio
from dataclasses import replace
from uuid import UUID, uuid4

from echo_api.errors import Forbidden, Gone, NotFound
from echo_api.storage.base import (
    USER_NAME_MAX_LENGTH,
    ChatRole,
    Conversation,
    ConversationStore,
    ConversationSummary,
    Message,
    SharedSnapshot,
    SnapshotStore,
    Storage,
    User,
    UserStore,
    normalize_title,
    utcnow,
)


class InMemoryUserStore(UserStore):
    def __init__(self):
        self._users: dict[UUID, User] = {}
        self._lock = asyncio.Lock()

    async def get_user(self, user_id: UUID) -> User | None:
        return self._users.get(user_id)

    async def provision(
        self, email: str, name: str, external_id: str | None = None
    ) -> tuple[User, bool]:
        email = email.strip().lower()
        name = name.strip()[:USER_NAME_MAX_LENGTH]
        async with self._lock:
            user = None
            if external_id:
                user = next(
                    (u for u in self._users.values() if u.external_id == external_id), None
                )
            if user is None:
                user = next((u for u in self._users.values() if u.email == email), None)

            if user is None:
                now = utcnow()
                user = User(
                    id=uuid4(),
                    name=name,
                    email=email,
                    external_id=external_id,
                    created_at=now,
                    updated_at=now,
                )
                self._users[user.id] = user
                return user, True

            changes = {}
            if external_id and not user.external_id:
                changes["external_id"] = external_id
            if name and user.name != name:
                changes["name"] = name
            if changes:
                user = replace(user, updated_at=utcnow(), **changes)
                self._users[user.id] = user
            return user, False


class InMemoryConversationStore(ConversationStore):
    def __init__(self):
        self._conversations: dict[UUID, Conversation] = {}
        self._lock = asyncio.Lock()

    def _get_or_404(self, conversation_id: UUID) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        return conversation

    async def create_conversation(self, owner_id: UUID, initial_title: str) -> Conversation:
        async with self._lock:
            conversation_id = uuid4()
            while conversation_id in self._conversations:
                conversation_id = uuid4()
            now = utcnow()
            conversation = Conversation(
                id=conversation_id,
                owner_id=owner_id,
                title=normalize_title(initial_title),
                created_at=now,
                last_activity=now,
                messages=[],
            )
            self._conversations[conversation_id] = conversation
            return _copy(conversation)

    async def append_message(
        self, conversation_id: UUID, role: ChatRole | str, text: str
    ) -> Message:
        role = ChatRole.parse(role)
        async with self._lock:
            conversation = self._get_or_404(conversation_id)
            message = Message(
                role=role,
                text=text,
                created_at=utcnow(),
                position=len(conversation.messages),
            )
            self._conversations[conversation_id] = replace(
                conversation,
                messages=[*conversation.messages, message],
                last_activity=message.created_at,
            )
            return message

    async def get_conversation(self, conversation_id: UUID) -> Conversation:
        return _copy(self._get_or_404(conversation_id))

    async def list_summaries(self, owner_id: UUID) -> list[ConversationSummary]:
        owned = [c for c in self._conversations.values() if c.owner_id == owner_id]
        owned.sort(key=lambda c: (c.last_activity, c.created_at), reverse=True)
        return [
            ConversationSummary(id=c.id, title=c.title, last_activity=c.last_activity)
            for c in owned
        ]

    async def rename_conversation(self, conversation_id: UUID, new_title: str) -> Conversation:
        async with self._lock:
            conversation = replace(
                self._get_or_404(conversation_id), title=normalize_title(new_title)
            )
            self._conversations[conversation_id] = conversation
            return _copy(conversation)

    async def delete_conversation(self, conversation_id: UUID, requester_id: UUID) -> None:
        async with self._lock:
            conversation = self._get_or_404(conversation_id)
            if conversation.owner_id != requester_id:
                raise Forbidden("Unauthorized to delete this conversation")
            del self._conversations[conversation_id]


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._snapshots: dict[str, SharedSnapshot] = {}
        self._lock = asyncio.Lock()

    async def _insert(self, snapshot: SharedSnapshot) -> bool:
        async with self._lock:
            if snapshot.slug in self._snapshots:
                return False
            self._snapshots[snapshot.slug] = snapshot
            return True

    async def get_snapshot(self, slug: str) -> SharedSnapshot:
        async with self._lock:
            snapshot = self._snapshots.get(slug)
            if snapshot is None or not snapshot.is_active:
                raise NotFound("Shared conversation not found or has been deleted")
            if snapshot.is_expired():
                raise Gone("This shared conversation has expired")
            snapshot = replace(snapshot, views=snapshot.views + 1)
            self._snapshots[slug] = snapshot
            return snapshot

    async def deactivate_snapshot(self, slug: str, requester_id: str | None) -> None:
        async with self._lock:
            snapshot = self._snapshots.get(slug)
            if snapshot is None:
                raise NotFound("Shared conversation not found")
            if not snapshot.is_anonymous and snapshot.owner_id != requester_id:
                raise Forbidden("You do not have permission to delete this shared conversation")
            self._snapshots[slug] = replace(snapshot, is_active=False)

    async def list_for_owner(self, owner_id: str, limit: int = 50) -> list[SharedSnapshot]:
        owned = [s for s in self._snapshots.values() if s.owner_id == owner_id and s.is_active]
        owned.sort(key=lambda s: s.created_at, reverse=True)
        return owned[:limit]


def _copy(conversation: Conversation) -> Conversation:
    # Callers get their own message list so they can't mutate stored state
    return replace(conversation, messages=list(conversation.messages))


def build_memory_storage(**snapshot_options) -> Storage:
    return Storage(
        backend="memory",
        users=InMemoryUserStore(),
        conversations=InMemoryConversationStore(),
        snapshots=InMemorySnapshotStore(**snapshot_options),
    )
