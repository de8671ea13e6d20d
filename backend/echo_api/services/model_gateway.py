"""OpenAI-compatible chat-completion gateway (OpenAI or Groq)."""

import asyncio
import logging
import re

from openai import APIConnectionError, APIError, AsyncOpenAI, RateLimitError

from echo_api.config import Settings, get_settings
from echo_api.errors import ModelUnavailable

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_DEFAULT_MODEL = "llama-3.3-70b-versatile"
OPENAI_DEFAULT_MODEL = "gpt-3.5-turbo"

PLACEHOLDER_RESPONSE = (
    "[Placeholder response] AI service not configured. "
    "Please add your API key to the .env file."
)

TITLE_INSTRUCTION = (
    "Summarize this prompt in 3-5 words for a chat title. "
    "Do not use quotes. Be concise and descriptive."
)
TITLE_MAX_WORDS = 5

# Transient error types that warrant retrying
_RETRYABLE_ERRORS = (APIConnectionError, RateLimitError)


def is_groq_key(api_key: str) -> bool:
    return api_key.startswith("gsk_")


def clean_title(raw: str, max_words: int = TITLE_MAX_WORDS) -> str:
    """Strip quotes and trailing punctuation, keep at most `max_words` words."""
    text = raw.strip().splitlines()[0] if raw.strip() else ""
    text = re.sub(r"^(title:\s*)", "", text, flags=re.IGNORECASE)
    text = text.strip().strip("\"'`*").strip()
    words = text.split()[:max_words]
    return " ".join(words).rstrip(".!?,;:")


def fallback_title(message: str) -> str:
    """Title derived from the message itself, used when no provider is configured."""
    words = " ".join(message.split()[:4])
    return words[:30] + "..." if len(words) > 30 else words


class ModelGateway:
    """
    Stateless client for chat completions.

    Without a usable API key every call returns PLACEHOLDER_RESPONSE and no
    request is made, so "no backend" is distinguishable from "backend error".
    """

    # Seconds before the first retry; doubles on each attempt
    retry_base_delay = 1.0

    def __init__(self, settings: Settings | None = None, client: AsyncOpenAI | None = None):
        self.settings = settings or get_settings()
        self.client = client

        api_key = (self.settings.openai_api_key or "").strip()
        groq = bool(api_key) and is_groq_key(api_key)
        self.provider = "groq" if groq else "openai"
        self.model = self.settings.llm_model or (GROQ_DEFAULT_MODEL if groq else OPENAI_DEFAULT_MODEL)

        if self.client is None and self.settings.ai_configured:
            self.client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.settings.openai_base_url or (GROQ_BASE_URL if groq else None),
                timeout=self.settings.llm_timeout_seconds,
                max_retries=0,  # Retries handled below
            )

        if self.client is None:
            logger.warning("AI client not initialized - API key missing or placeholder")
        else:
            logger.info("AI client initialized with %s API (model %s)", self.provider, self.model)

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def complete(
        self,
        prompt: list[dict[str, str]],
        temperature: float,
        max_tokens: int | None = None,
    ) -> str:
        """
        Get a non-streaming completion for the prompt.

        Raises:
            ModelUnavailable: network failure, non-2xx response, or malformed payload
        """
        if self.client is None:
            logger.info("Using placeholder AI response - API key not configured")
            return PLACEHOLDER_RESPONSE

        # One initial attempt plus up to llm_max_retries retries
        max_attempts = max(0, self.settings.llm_max_retries) + 1
        logger.debug("Sending %d messages to %s", len(prompt), self.model)

        for attempt in range(max_attempts):
            try:
                completion = await self.client.chat.completions.create(
                    model=self.model,
                    messages=prompt,
                    temperature=temperature,
                    max_tokens=max_tokens or self.settings.llm_max_tokens,
                )
                return self._extract_text(completion)

            except _RETRYABLE_ERRORS as e:
                if attempt < max_attempts - 1:
                    delay = self.retry_base_delay * (2 ** attempt)
                    logger.warning(
                        "LLM transient error (attempt %d/%d), retrying in %.1fs: %s",
                        attempt + 1, max_attempts, delay, str(e),
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error("LLM request failed after %d attempts: %s", max_attempts, e)
                    raise ModelUnavailable(detail=str(e)) from e

            except APIError as e:
                logger.error("LLM provider error: %s", e)
                raise ModelUnavailable(detail=str(e)) from e

        raise ModelUnavailable()  # Should not reach here

    @staticmethod
    def _extract_text(completion) -> str:
        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ModelUnavailable(detail=f"Malformed completion payload: {e}") from e
        if not isinstance(content, str) or not content.strip():
            raise ModelUnavailable(detail="Completion contained no text")
        return content

    async def generate_title(self, message: str) -> str:
        """Short (<= 5 words) conversation title for the first message."""
        if self.client is None:
            return fallback_title(message)

        raw = await self.complete(
            [
                {"role": "system", "content": TITLE_INSTRUCTION},
                {"role": "user", "content": message},
            ],
            temperature=0.7,
            max_tokens=self.settings.title_max_tokens,
        )
        return clean_title(raw)
