"""Conversation, share snapshot and user storage with interchangeable backends."""

from echo_api.storage.base import (
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
)
from echo_api.storage.factory import select_storage
from echo_api.storage.memory import build_memory_storage
from echo_api.storage.sql import build_sql_storage

__all__ = [
    "ChatRole",
    "Conversation",
    "ConversationStore",
    "ConversationSummary",
    "Message",
    "SharedSnapshot",
    "SnapshotStore",
    "Storage",
    "User",
    "UserStore",
    "build_memory_storage",
    "build_sql_storage",
    "select_storage",
]
