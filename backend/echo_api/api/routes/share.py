"""
Share Routes

Endpoints:
- POST /share - Freeze a question/answer pair under a short slug
- GET /share/{share_id} - Public read, counts a view
- DELETE /share/{share_id} - Soft delete (owner, or anyone for anonymous shares)
- GET /share/user/{user_id} - The caller's active shares
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import APIRouter, status

from echo_api.api.deps import CurrentUser, SettingsDep, StorageDep, require_self
from echo_api.schemas.base import SuccessResponse
from echo_api.schemas.share import (
    ShareCreated,
    ShareCreateRequest,
    ShareCreateResponse,
    SharedSnapshotRead,
    SharedSnapshotResponse,
    ShareListResponse,
    ShareSummary,
    question_preview,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/share", tags=["share"])


@router.post("", response_model=ShareCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_share(
    request: ShareCreateRequest,
    user: CurrentUser,
    storage: StorageDep,
    settings: SettingsDep,
):
    expires_at = None
    if request.expires_in_days:
        expires_at = datetime.now(timezone.utc) + timedelta(days=request.expires_in_days)

    snapshot = await storage.snapshots.create_snapshot(
        question=request.question,
        answer=request.answer,
        owner_id=str(user.id),
        original_conversation_id=request.conversation_id,
        expires_at=expires_at,
    )
    logger.info("Created shared conversation: %s", snapshot.slug)

    return ShareCreateResponse(
        data=ShareCreated(
            share_id=snapshot.slug,
            share_url=f"{settings.frontend_url.rstrip('/')}/share/{snapshot.slug}",
            created_at=snapshot.created_at,
        ),
    )


@router.get("/user/{user_id}", response_model=ShareListResponse)
async def list_user_shares(
    user_id: UUID,
    user: CurrentUser,
    storage: StorageDep,
    settings: SettingsDep,
):
    require_self(user_id, user)

    snapshots = await storage.snapshots.list_for_owner(str(user_id), limit=settings.share_list_limit)
    return ShareListResponse(
        count=len(snapshots),
        data=[
            ShareSummary(
                share_id=s.slug,
                question=question_preview(s.question),
                created_at=s.created_at,
                views=s.views,
            )
            for s in snapshots
        ],
    )


@router.get("/{share_id}", response_model=SharedSnapshotResponse)
async def get_share(share_id: str, storage: StorageDep):
    """Public endpoint: anyone with the link can read an active share."""
    snapshot = await storage.snapshots.get_snapshot(share_id)
    return SharedSnapshotResponse(
        data=SharedSnapshotRead(
            share_id=snapshot.slug,
            question=snapshot.question,
            answer=snapshot.answer,
            created_at=snapshot.created_at,
            views=snapshot.views,
        ),
    )


@router.delete("/{share_id}", response_model=SuccessResponse)
async def delete_share(share_id: str, user: CurrentUser, storage: StorageDep):
    await storage.snapshots.deactivate_snapshot(share_id, str(user.id))
    logger.info("Deactivated shared conversation: %s", share_id)
    return SuccessResponse(message="Shared conversation deleted successfully")
