"""
SQL storage backend (SQLAlchemy async).

Each operation runs in its own short session; the stores hold only the
session factory. Rows are converted to storage records before they leave
this module.
"""

import logging
from dataclasses import replace
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from echo_api.db import models
from echo_api.db.session import create_session_factory
from echo_api.errors import Forbidden, Gone, Internal, NotFound
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
    as_aware,
    normalize_title,
    utcnow,
)

logger = logging.getLogger(__name__)

# Conflicting appends on the same (conversation_id, position) are retried
MAX_APPEND_ATTEMPTS = 5


# =============================================================================
# ROW -> RECORD
# =============================================================================


def _user(row: models.User) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        external_id=row.external_id,
        created_at=as_aware(row.created_at),
        updated_at=as_aware(row.updated_at),
    )


def _message(row: models.Message) -> Message:
    return Message(
        role=ChatRole.parse(row.role),
        text=row.text,
        created_at=as_aware(row.created_at),
        position=row.position,
    )


def _conversation(row: models.Conversation, messages: list[models.Message]) -> Conversation:
    return Conversation(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        created_at=as_aware(row.created_at),
        last_activity=as_aware(row.last_activity),
        messages=[_message(m) for m in sorted(messages, key=lambda m: m.position)],
    )


def _snapshot(row: models.SharedSnapshot) -> SharedSnapshot:
    return SharedSnapshot(
        slug=row.slug,
        question=row.question,
        answer=row.answer,
        owner_id=row.owner_id,
        original_conversation_id=row.original_conversation_id,
        views=row.views,
        is_active=row.is_active,
        created_at=as_aware(row.created_at),
        expires_at=as_aware(row.expires_at),
    )


# =============================================================================
# STORES
# =============================================================================


class SqlUserStore(UserStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_user(self, user_id: UUID) -> User | None:
        async with self.session_factory() as db:
            row = await db.get(models.User, user_id)
            return _user(row) if row else None

    async def _find(
        self, db: AsyncSession, email: str, external_id: str | None
    ) -> models.User | None:
        row = None
        if external_id:
            row = await db.scalar(
                select(models.User).where(models.User.external_id == external_id)
            )
        if row is None:
            row = await db.scalar(select(models.User).where(models.User.email == email))
        return row

    async def provision(
        self, email: str, name: str, external_id: str | None = None
    ) -> tuple[User, bool]:
        email = email.strip().lower()
        name = name.strip()[:USER_NAME_MAX_LENGTH]

        async with self.session_factory() as db:
            row = await self._find(db, email, external_id)
            if row is None:
                now = utcnow()
                row = models.User(
                    name=name,
                    email=email,
                    external_id=external_id,
                    created_at=now,
                    updated_at=now,
                )
                db.add(row)
                try:
                    await db.commit()
                    return _user(row), True
                except IntegrityError:
                    # Concurrent first login for the same account; use the winner's row
                    await db.rollback()
                    row = await self._find(db, email, external_id)
                    if row is None:
                        raise

            updated = False
            if external_id and not row.external_id:
                row.external_id = external_id
                updated = True
            if name and row.name != name:
                row.name = name
                updated = True
            if updated:
                row.updated_at = utcnow()
                await db.commit()
            return _user(row), False


class SqlConversationStore(ConversationStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _load(self, db: AsyncSession, conversation_id: UUID) -> Conversation:
        row = await db.scalar(
            select(models.Conversation)
            .options(selectinload(models.Conversation.messages))
            .where(models.Conversation.id == conversation_id)
        )
        if row is None:
            raise NotFound("Conversation not found")
        return _conversation(row, row.messages)

    async def create_conversation(self, owner_id: UUID, initial_title: str) -> Conversation:
        now = utcnow()
        async with self.session_factory() as db:
            row = models.Conversation(
                owner_id=owner_id,
                title=normalize_title(initial_title),
                created_at=now,
                last_activity=now,
            )
            db.add(row)
            await db.commit()
            return _conversation(row, [])

    async def append_message(
        self, conversation_id: UUID, role: ChatRole | str, text: str
    ) -> Message:
        role = ChatRole.parse(role)

        for attempt in range(MAX_APPEND_ATTEMPTS):
            async with self.session_factory() as db:
                conversation = await db.scalar(
                    select(models.Conversation)
                    .where(models.Conversation.id == conversation_id)
                    .with_for_update()
                )
                if conversation is None:
                    raise NotFound("Conversation not found")

                next_position = await db.scalar(
                    select(func.coalesce(func.max(models.Message.position) + 1, 0)).where(
                        models.Message.conversation_id == conversation_id
                    )
                )
                row = models.Message(
                    conversation_id=conversation_id,
                    position=next_position,
                    role=role.value,
                    text=text,
                    created_at=utcnow(),
                )
                db.add(row)
                conversation.last_activity = row.created_at
                try:
                    await db.commit()
                    return _message(row)
                except IntegrityError:
                    await db.rollback()
                    logger.warning(
                        "Position conflict appending to conversation %s (attempt %d/%d)",
                        conversation_id, attempt + 1, MAX_APPEND_ATTEMPTS,
                    )

        raise Internal("Could not append message", conversation_id=conversation_id)

    async def get_conversation(self, conversation_id: UUID) -> Conversation:
        async with self.session_factory() as db:
            return await self._load(db, conversation_id)

    async def list_summaries(self, owner_id: UUID) -> list[ConversationSummary]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    models.Conversation.id,
                    models.Conversation.title,
                    models.Conversation.last_activity,
                )
                .where(models.Conversation.owner_id == owner_id)
                .order_by(
                    models.Conversation.last_activity.desc(),
                    models.Conversation.created_at.desc(),
                )
            )
            return [
                ConversationSummary(id=id_, title=title, last_activity=as_aware(last_activity))
                for id_, title, last_activity in result.all()
            ]

    async def rename_conversation(self, conversation_id: UUID, new_title: str) -> Conversation:
        async with self.session_factory() as db:
            row = await db.get(models.Conversation, conversation_id)
            if row is None:
                raise NotFound("Conversation not found")
            row.title = normalize_title(new_title)
            await db.commit()
            return await self._load(db, conversation_id)

    async def delete_conversation(self, conversation_id: UUID, requester_id: UUID) -> None:
        async with self.session_factory() as db:
            row = await db.get(models.Conversation, conversation_id)
            if row is None:
                raise NotFound("Conversation not found")
            if row.owner_id != requester_id:
                raise Forbidden("Unauthorized to delete this conversation")

            await db.execute(
                delete(models.Message).where(models.Message.conversation_id == conversation_id)
            )
            await db.execute(
                delete(models.Conversation).where(models.Conversation.id == conversation_id)
            )
            await db.commit()


class SqlSnapshotStore(SnapshotStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], **kwargs):
        super().__init__(**kwargs)
        self.session_factory = session_factory

    async def _insert(self, snapshot: SharedSnapshot) -> bool:
        async with self.session_factory() as db:
            db.add(
                models.SharedSnapshot(
                    slug=snapshot.slug,
                    owner_id=snapshot.owner_id,
                    question=snapshot.question,
                    answer=snapshot.answer,
                    original_conversation_id=snapshot.original_conversation_id,
                    views=snapshot.views,
                    is_active=snapshot.is_active,
                    expires_at=snapshot.expires_at,
                    created_at=snapshot.created_at,
                )
            )
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.info("Share slug collision on %s, retrying", snapshot.slug)
                return False
            return True

    async def get_snapshot(self, slug: str) -> SharedSnapshot:
        async with self.session_factory() as db:
            row = await db.scalar(
                select(models.SharedSnapshot)
                .where(models.SharedSnapshot.slug == slug)
                .with_for_update()
            )
            if row is None or not row.is_active:
                raise NotFound("Shared conversation not found or has been deleted")

            snapshot = _snapshot(row)
            if snapshot.is_expired():
                raise Gone("This shared conversation has expired")

            await db.execute(
                update(models.SharedSnapshot)
                .where(models.SharedSnapshot.id == row.id)
                .values(views=models.SharedSnapshot.views + 1)
                .execution_options(synchronize_session=False)
            )
            views = await db.scalar(
                select(models.SharedSnapshot.views).where(models.SharedSnapshot.id == row.id)
            )
            await db.commit()
            return replace(snapshot, views=views)

    async def deactivate_snapshot(self, slug: str, requester_id: str | None) -> None:
        async with self.session_factory() as db:
            row = await db.scalar(
                select(models.SharedSnapshot).where(models.SharedSnapshot.slug == slug)
            )
            if row is None:
                raise NotFound("Shared conversation not found")
            if not _snapshot(row).is_anonymous and row.owner_id != requester_id:
                raise Forbidden("You do not have permission to delete this shared conversation")
            row.is_active = False
            await db.commit()

    async def list_for_owner(self, owner_id: str, limit: int = 50) -> list[SharedSnapshot]:
        async with self.session_factory() as db:
            rows = await db.scalars(
                select(models.SharedSnapshot)
                .where(
                    models.SharedSnapshot.owner_id == owner_id,
                    models.SharedSnapshot.is_active.is_(True),
                )
                .order_by(models.SharedSnapshot.created_at.desc())
                .limit(limit)
            )
            return [_snapshot(row) for row in rows]


def build_sql_storage(engine: AsyncEngine, **snapshot_options) -> Storage:
    session_factory = create_session_factory(engine)
    return Storage(
        backend="sql",
        users=SqlUserStore(session_factory),
        conversations=SqlConversationStore(session_factory),
        snapshots=SqlSnapshotStore(session_factory, **snapshot_options),
        close=engine.dispose,
    )
