"""
Prompt assembly for the chat model.

The prompt is always:

    [system, ...prior turns (oldest first), new user turn]

Truncation is opt-in. With `max_messages` and/or `max_chars`, the oldest
prior turns are dropped until both limits hold. The system instruction and
the new user turn are never dropped, so `max_chars` bounds only the prior
history.
"""

from collections.abc import Iterable, Sequence
from typing import Protocol

_ROLE_MAP = {
    "user": "user",
    "assistant": "assistant",
    "ai": "assistant",
}


class StoredTurn(Protocol):
    role: str
    text: str


def prompt_role(role: str) -> str:
    """Map a stored message role to the prompt role ('user' or 'assistant')."""
    value = getattr(role, "value", role)
    try:
        return _ROLE_MAP[value]
    except KeyError:
        raise ValueError(f"Unknown message role: {value!r}") from None


def truncate_history(
    turns: Sequence[dict[str, str]],
    *,
    max_messages: int | None = None,
    max_chars: int | None = None,
) -> list[dict[str, str]]:
    """Drop the oldest turns until the message and character limits hold."""
    turns = list(turns)
    if max_messages is not None:
        turns = turns[-max_messages:] if max_messages > 0 else []
    if max_chars is not None:
        total = sum(len(t["content"]) for t in turns)
        start = 0
        while start < len(turns) and total > max_chars:
            total -= len(turns[start]["content"])
            start += 1
        turns = turns[start:]
    return turns


def assemble_prompt(
    system_instruction: str,
    prior_messages: Iterable[StoredTurn],
    new_user_text: str,
    *,
    max_messages: int | None = None,
    max_chars: int | None = None,
) -> list[dict[str, str]]:
    """
    Build the ordered message list sent to the model.

    Args:
        system_instruction: Persona instruction, sent as the first message
        prior_messages: Stored messages in conversation order (objects with role/text)
        new_user_text: The message being answered
        max_messages: Keep at most this many prior turns (None = unlimited)
        max_chars: Keep at most this many characters of prior turns (None = unlimited)

    Returns:
        List of {"role", "content"} dicts
    """
    history = [
        {"role": prompt_role(message.role), "content": message.text}
        for message in prior_messages
    ]
    history = truncate_history(history, max_messages=max_messages, max_chars=max_chars)

    return [
        {"role": "system", "content": system_instruction},
        *history,
        {"role": "user", "content": new_user_text},
    ]
