"""API routes for chat conversations."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter

from echo_api.api.deps import CurrentUser, OrchestratorDep, StorageDep, require_self
from echo_api.schemas.base import SuccessResponse
from echo_api.schemas.chat import (
    ChatMetadata,
    ChatRequest,
    ChatResponse,
    ConversationRead,
    ConversationResponse,
    ConversationSummaryRead,
    HistoryResponse,
    PersonaListResponse,
    PersonaRead,
    RenameConversationRequest,
)
from echo_api.services.personas import list_personas

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


# =============================================================================
# CHAT
# =============================================================================


@router.post("/chat", response_model=ChatResponse)
async def send_message(
    request: ChatRequest,
    user: CurrentUser,
    orchestrator: OrchestratorDep,
):
    """
    Send a message and get the AI response.

    Without conversation_id a new conversation is created; its title starts as
    a truncation of the message and is replaced by a generated summary in the
    background. If generation fails the user message is still saved and the
    error response carries conversationId so the client can retry.
    """
    if request.user_id is not None:
        require_self(request.user_id, user)

    result = await orchestrator.send_message(
        user_id=user.id,
        message=request.message,
        conversation_id=request.conversation_id,
        persona=request.persona,
        system_instruction=request.system_instruction,
        temperature=request.temperature,
    )

    return ChatResponse(
        response=result.response,
        conversation_id=result.conversation_id,
        metadata=ChatMetadata(
            title=result.title,
            message_count=result.message_count,
            persona=result.persona.key,
            model=result.model,
            processed_at=datetime.now(timezone.utc),
        ),
    )


@router.get("/personas", response_model=PersonaListResponse)
async def get_personas():
    """List available personas (public)."""
    return PersonaListResponse(
        personas=[PersonaRead.model_validate(p) for p in list_personas()],
    )


# =============================================================================
# CONVERSATION MANAGEMENT
# =============================================================================


@router.get("/history/{user_id}", response_model=HistoryResponse)
async def get_conversation_history(
    user_id: UUID,
    user: CurrentUser,
    storage: StorageDep,
):
    """List the user's conversations (id, title, last activity), most recent first."""
    require_self(user_id, user)

    summaries = await storage.conversations.list_summaries(user_id)
    return HistoryResponse(
        count=len(summaries),
        conversations=[ConversationSummaryRead.model_validate(s) for s in summaries],
    )


@router.get("/conversation/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    user: CurrentUser,
    orchestrator: OrchestratorDep,
):
    """Get a conversation with its full message history."""
    conversation = await orchestrator.get_owned_conversation(conversation_id, user.id)
    return ConversationResponse(conversation=ConversationRead.model_validate(conversation))


@router.patch("/conversation/{conversation_id}", response_model=ConversationResponse)
async def rename_conversation(
    conversation_id: UUID,
    request: RenameConversationRequest,
    user: CurrentUser,
    orchestrator: OrchestratorDep,
    storage: StorageDep,
):
    """Rename a conversation."""
    await orchestrator.get_owned_conversation(conversation_id, user.id)
    conversation = await storage.conversations.rename_conversation(conversation_id, request.title)
    return ConversationResponse(conversation=ConversationRead.model_validate(conversation))


@router.delete("/conversation/{conversation_id}", response_model=SuccessResponse)
async def delete_conversation(
    conversation_id: UUID,
    user: CurrentUser,
    storage: StorageDep,
):
    """Delete a conversation and all its messages."""
    await storage.conversations.delete_conversation(conversation_id, user.id)
    logger.info("Deleted conversation %s", conversation_id)
    return SuccessResponse(message="Conversation deleted successfully")
