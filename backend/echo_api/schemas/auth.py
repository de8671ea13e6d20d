"""Authentication schemas."""

from pydantic import EmailStr, Field

from echo_api.schemas.base import BaseSchema, RequestSchema
from echo_api.schemas.user import UserRead


class LoginRequest(RequestSchema):
    """Auto-provisioning login: unknown emails get a new account."""

    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    google_id: str | None = Field(None, max_length=255, description="Identity provider subject, if any")


class TokenResponse(BaseSchema):
    """Response schema for successful authentication."""

    success: bool = True
    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token expiry in seconds")
    user: UserRead


class VerifyResponse(BaseSchema):
    success: bool = True
    user: UserRead
