"""
Chat turn pipeline.

One call to send_message runs, strictly in order:

1. validate input
2. resolve the conversation (ownership checked) or create one
3. persist the user message
4. assemble history and call the model gateway
5. persist the assistant message and return

If the gateway fails, the user message stays persisted and the error carries
the conversation id so the client can retry in the same conversation.
New conversations get a generated title from a detached task started as soon
as the user message is stored, whether or not generation then succeeds.
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from echo_api.config import Settings, get_settings
from echo_api.errors import BadRequest, EchoError, Forbidden, Internal, ModelUnavailable
from echo_api.services.history import assemble_prompt
from echo_api.services.model_gateway import ModelGateway
from echo_api.services.personas import Persona, get_persona
from echo_api.storage.base import ChatRole, Conversation, ConversationStore

logger = logging.getLogger(__name__)

PROVISIONAL_TITLE_LENGTH = 50


def provisional_title(message: str) -> str:
    """Title used until the generated one arrives: the message, cut to 47 chars + '...'."""
    message = message.strip()
    if len(message) > PROVISIONAL_TITLE_LENGTH:
        return message[: PROVISIONAL_TITLE_LENGTH - 3] + "..."
    return message


@dataclass(frozen=True)
class TurnResult:
    conversation_id: UUID
    response: str
    title: str
    message_count: int
    persona: Persona
    created: bool
    model: str | None = None


class TurnOrchestrator:
    def __init__(
        self,
        conversations: ConversationStore,
        gateway: ModelGateway,
        settings: Settings | None = None,
    ):
        self.conversations = conversations
        self.gateway = gateway
        self.settings = settings or get_settings()
        self._background: set[asyncio.Task] = set()

    async def send_message(
        self,
        user_id: UUID | None,
        message: str | None,
        conversation_id: UUID | None = None,
        persona: str | None = None,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> TurnResult:
        # 1. Validate
        if user_id is None:
            raise BadRequest("User ID is required")
        text = (message or "").strip()
        if not text:
            raise BadRequest("Message is required")

        # 2. Resolve or create
        created = False
        if conversation_id is not None:
            conversation = await self.conversations.get_conversation(conversation_id)
            if conversation.owner_id != user_id:
                raise Forbidden("Unauthorized access to conversation")
        else:
            conversation = await self.conversations.create_conversation(
                user_id, provisional_title(text)
            )
            created = True
            logger.info("Created conversation %s for user %s", conversation.id, user_id)

        prior_messages = conversation.messages

        # 3. Persist the user turn before generation so it survives failures
        await self.conversations.append_message(conversation.id, ChatRole.USER, text)
        if created:
            # Detached; independent of the generation outcome
            self._spawn(self._generate_title(conversation.id, text))

        # 4. Assemble and generate
        selected = get_persona(persona)
        prompt = assemble_prompt(
            system_instruction or selected.system_instruction,
            prior_messages,
            text,
            max_messages=self.settings.history_max_messages,
            max_chars=self.settings.history_max_chars,
        )
        try:
            response = await self.gateway.complete(
                prompt,
                temperature=selected.temperature if temperature is None else temperature,
            )
        except ModelUnavailable as e:
            logger.error("Generation failed for conversation %s: %s", conversation.id, e.detail)
            e.conversation_id = conversation.id
            raise

        # 5. Persist the assistant turn
        try:
            await self.conversations.append_message(conversation.id, ChatRole.ASSISTANT, response)
        except EchoError as e:
            e.conversation_id = conversation.id
            raise
        except Exception as e:
            logger.exception("Failed to save assistant message for %s", conversation.id)
            raise Internal(
                "Error saving AI response", conversation_id=conversation.id, detail=str(e)
            ) from e

        return TurnResult(
            conversation_id=conversation.id,
            response=response,
            title=conversation.title,
            message_count=len(prior_messages) + 2,
            persona=selected,
            created=created,
            model=self.gateway.model if self.gateway.configured else None,
        )

    async def get_owned_conversation(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        conversation = await self.conversations.get_conversation(conversation_id)
        if conversation.owner_id != user_id:
            raise Forbidden("Unauthorized access to conversation")
        return conversation

    # =========================================================================
    # BACKGROUND TITLE GENERATION
    # =========================================================================

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _generate_title(self, conversation_id: UUID, message: str) -> None:
        """Replace the provisional title. Never raises."""
        try:
            title = await self.gateway.generate_title(message)
            if title:
                await self.conversations.rename_conversation(conversation_id, title)
                logger.info("Titled conversation %s: %s", conversation_id, title)
        except Exception:
            logger.exception("Title generation failed for conversation %s", conversation_id)

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        """Wait for detached title tasks to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
