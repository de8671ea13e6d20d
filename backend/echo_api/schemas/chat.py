"""Pydantic schemas for chat operations."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from echo_api.schemas.base import BaseSchema, RequestSchema
from echo_api.storage.base import ChatRole


# Request schemas
class ChatRequest(RequestSchema):
    """Request to send a chat message. Omit conversation_id to start a new conversation."""

    message: str = Field(..., max_length=10000)
    conversation_id: UUID | None = None
    user_id: UUID | None = Field(None, description="Optional; must match the authenticated user")
    persona: str | None = Field(None, max_length=50)
    system_instruction: str | None = Field(None, max_length=10000)
    temperature: float | None = Field(None, ge=0.0, le=2.0)


class RenameConversationRequest(RequestSchema):
    title: str = Field(..., min_length=1, max_length=200)


# Response schemas
class ChatMetadata(BaseSchema):
    title: str
    message_count: int
    persona: str
    model: str | None = None
    processed_at: datetime


class ChatResponse(BaseSchema):
    success: bool = True
    message: str = "Message sent successfully"
    response: str
    conversation_id: UUID
    metadata: ChatMetadata


class MessageRead(BaseSchema):
    role: ChatRole
    text: str
    created_at: datetime


class ConversationRead(BaseSchema):
    id: UUID
    title: str
    messages: list[MessageRead]
    created_at: datetime
    last_activity: datetime


class ConversationResponse(BaseSchema):
    success: bool = True
    conversation: ConversationRead


class ConversationSummaryRead(BaseSchema):
    id: UUID
    title: str
    last_activity: datetime


class HistoryResponse(BaseSchema):
    success: bool = True
    count: int
    conversations: list[ConversationSummaryRead]


class PersonaRead(BaseSchema):
    key: str
    display_name: str
    temperature: float


class PersonaListResponse(BaseSchema):
    success: bool = True
    personas: list[PersonaRead]
