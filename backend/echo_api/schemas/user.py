"""User schemas."""

from datetime import datetime
from uuid import UUID

from echo_api.schemas.base import BaseSchema


class UserRead(BaseSchema):
    """Schema for reading user data."""

    id: UUID
    name: str
    email: str
    created_at: datetime
