"""Schemas for shared question/answer snapshots."""

from datetime import datetime

from pydantic import Field

from echo_api.schemas.base import BaseSchema, RequestSchema

QUESTION_PREVIEW_LENGTH = 100


class ShareCreateRequest(RequestSchema):
    question: str = Field(..., max_length=20000)
    answer: str = Field(..., max_length=100000)
    conversation_id: str | None = Field(None, max_length=255)
    expires_in_days: int | None = Field(None, ge=1, le=365)


class ShareCreated(BaseSchema):
    share_id: str
    share_url: str
    created_at: datetime


class ShareCreateResponse(BaseSchema):
    success: bool = True
    message: str = "Conversation shared successfully"
    data: ShareCreated


class SharedSnapshotRead(BaseSchema):
    share_id: str
    question: str
    answer: str
    created_at: datetime
    views: int


class SharedSnapshotResponse(BaseSchema):
    success: bool = True
    data: SharedSnapshotRead


class ShareSummary(BaseSchema):
    share_id: str
    question: str
    created_at: datetime
    views: int


class ShareListResponse(BaseSchema):
    success: bool = True
    count: int
    data: list[ShareSummary]


def question_preview(question: str) -> str:
    if len(question) > QUESTION_PREVIEW_LENGTH:
        return question[:QUESTION_PREVIEW_LENGTH] + "..."
    return question
