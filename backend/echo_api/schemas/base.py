"""Base schema configuration."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration. JSON keys are camelCase."""

    model_config = ConfigDict(
        from_attributes=True,  # Read storage records directly
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RequestSchema(BaseSchema):
    """Base for request bodies: surrounding whitespace is stripped from input strings."""

    model_config = ConfigDict(str_strip_whitespace=True)


class SuccessResponse(BaseSchema):
    """Plain acknowledgement."""

    success: bool = True
    message: str | None = None


class ErrorResponse(BaseSchema):
    """Error envelope returned for every failed request."""

    success: bool = False
    message: str
    error: str | None = None
    conversation_id: UUID | None = None
