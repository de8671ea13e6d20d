"""Request and response schemas."""

from echo_api.schemas.base import BaseSchema, ErrorResponse, RequestSchema, SuccessResponse

__all__ = ["BaseSchema", "ErrorResponse", "RequestSchema", "SuccessResponse"]
