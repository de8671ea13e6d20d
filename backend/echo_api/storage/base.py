"""
Storage contracts shared by the in-memory and SQL backends.

Records are plain dataclasses so both backends return the same shapes and
callers never see ORM objects. Route handlers turn them into response
schemas with `Schema.model_validate(record)`.
"""

import abc
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable
from uuid import UUID

from echo_api.errors import BadRequest, SlugExhausted
from echo_api.services.slugs import generate_slug

DEFAULT_TITLE = "New Conversation"
MAX_SLUG_ATTEMPTS = 10
# Matches the users.name column width
USER_NAME_MAX_LENGTH = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on the way back)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ChatRole(str, Enum):
    """Role of a stored message."""

    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: "str | ChatRole") -> "ChatRole":
        """Parse a role, accepting the legacy 'ai' alias for assistant."""
        if isinstance(value, ChatRole):
            return value
        if value == "ai":
            return cls.ASSISTANT
        try:
            return cls(value)
        except ValueError:
            raise BadRequest(f"Unknown message role: {value!r}") from None


# =============================================================================
# RECORDS
# =============================================================================


@dataclass(frozen=True)
class User:
    id: UUID
    name: str
    email: str
    external_id: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Message:
    role: ChatRole
    text: str
    created_at: datetime
    position: int


@dataclass(frozen=True)
class Conversation:
    id: UUID
    owner_id: UUID
    title: str
    created_at: datetime
    last_activity: datetime
    messages: list[Message] = field(default_factory=list)


@dataclass(frozen=True)
class ConversationSummary:
    id: UUID
    title: str
    last_activity: datetime


@dataclass(frozen=True)
class SharedSnapshot:
    slug: str
    question: str
    answer: str
    owner_id: str | None
    original_conversation_id: str | None
    views: int
    is_active: bool
    created_at: datetime
    expires_at: datetime | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.owner_id is None or self.owner_id == "anonymous"

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) > as_aware(self.expires_at)


# =============================================================================
# INTERFACES
# =============================================================================


class UserStore(abc.ABC):
    """Auto-provisioned user accounts."""

    @abc.abstractmethod
    async def get_user(self, user_id: UUID) -> User | None: ...

    @abc.abstractmethod
    async def provision(
        self, email: str, name: str, external_id: str | None = None
    ) -> tuple[User, bool]:
        """
        Find or create a user for a successful login.

        Looks up by external_id first, then by (lowercased) email. Existing
        users get their name and a missing external_id refreshed.

        Returns:
            (user, created)
        """


class ConversationStore(abc.ABC):
    """Conversations and their append-only message sequences."""

    @abc.abstractmethod
    async def create_conversation(self, owner_id: UUID, initial_title: str) -> Conversation: ...

    @abc.abstractmethod
    async def append_message(
        self, conversation_id: UUID, role: "ChatRole | str", text: str
    ) -> Message:
        """
        Append one message and bump last_activity to its timestamp.

        Raises NotFound if the conversation does not exist. Appends to the same
        conversation never interleave: each one lands at the next position.
        """

    @abc.abstractmethod
    async def get_conversation(self, conversation_id: UUID) -> Conversation:
        """Return the conversation with all messages in order, or raise NotFound."""

    @abc.abstractmethod
    async def list_summaries(self, owner_id: UUID) -> list[ConversationSummary]:
        """Owner's conversations, most recent activity first."""

    @abc.abstractmethod
    async def rename_conversation(self, conversation_id: UUID, new_title: str) -> Conversation: ...

    @abc.abstractmethod
    async def delete_conversation(self, conversation_id: UUID, requester_id: UUID) -> None:
        """Remove the conversation and its messages; Forbidden for non-owners."""


class SnapshotStore(abc.ABC):
    """
    Frozen question/answer pairs published under short slugs.

    Subclasses implement the primitive _insert; slug allocation with bounded
    retry lives here so both backends share it.
    """

    def __init__(
        self,
        slug_factory: Callable[[], str] = generate_slug,
        max_attempts: int = MAX_SLUG_ATTEMPTS,
    ):
        self.slug_factory = slug_factory
        self.max_attempts = max_attempts

    async def create_snapshot(
        self,
        question: str,
        answer: str,
        owner_id: str | None = None,
        original_conversation_id: str | None = None,
        expires_at: datetime | None = None,
    ) -> SharedSnapshot:
        question = (question or "").strip()
        answer = (answer or "").strip()
        if not question or not answer:
            raise BadRequest("Question and answer are required")

        for _ in range(self.max_attempts):
            snapshot = SharedSnapshot(
                slug=self.slug_factory(),
                question=question,
                answer=answer,
                owner_id=owner_id,
                original_conversation_id=original_conversation_id,
                views=0,
                is_active=True,
                created_at=utcnow(),
                expires_at=expires_at,
            )
            if await self._insert(snapshot):
                return snapshot

        raise SlugExhausted()

    @abc.abstractmethod
    async def _insert(self, snapshot: SharedSnapshot) -> bool:
        """Store the snapshot unless its slug is taken. Returns False on collision."""

    @abc.abstractmethod
    async def get_snapshot(self, slug: str) -> SharedSnapshot:
        """
        Public read. Raises NotFound (missing or deactivated) or Gone (expired);
        otherwise counts one view and returns the updated snapshot.
        """

    @abc.abstractmethod
    async def deactivate_snapshot(self, slug: str, requester_id: str | None) -> None: ...

    @abc.abstractmethod
    async def list_for_owner(self, owner_id: str, limit: int = 50) -> list[SharedSnapshot]: ...


@dataclass
class Storage:
    """The active backend's stores, chosen once at startup."""

    backend: str
    users: UserStore
    conversations: ConversationStore
    snapshots: SnapshotStore
    close: Callable[[], Awaitable[None]] | None = None

    async def aclose(self) -> None:
        if self.close is not None:
            await self.close()


def normalize_title(title: str | None) -> str:
    title = (title or "").strip()
    return title or DEFAULT_TITLE
