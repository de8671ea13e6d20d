"""API routes package."""

from echo_api.api.routes import auth, chat, share

__all__ = ["auth", "chat", "share"]
