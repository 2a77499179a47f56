"""
Mention API - 내가 받은 @멘션 조회/읽음 처리
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_session, CurrentPrincipal
from app.core.errors import ResourceNotFoundException
from app.schemas.mention import MentionResponse, UnreadCountResponse
from app.services import mention_service
from app.websockets.auth import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mentions", tags=["Mentions"])


@router.get("", response_model=List[MentionResponse], response_model_by_alias=True)
async def list_my_mentions(
    principal: Principal = CurrentPrincipal,
    db: AsyncSession = Depends(get_session)
) -> List[MentionResponse]:
    """최근 멘션 100건 (최신순)"""
    return await mention_service.list_user_mentions(db, principal.user_id)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    principal: Principal = CurrentPrincipal,
    db: AsyncSession = Depends(get_session)
) -> UnreadCountResponse:
    """읽지 않은 멘션 수"""
    count = await mention_service.count_unread_mentions(db, principal.user_id)
    return UnreadCountResponse(count=count)


@router.post("/{mention_id}/read")
async def mark_mention_read(
    mention_id: str,
    principal: Principal = CurrentPrincipal,
    db: AsyncSession = Depends(get_session)
):
    """멘션 읽음 처리 (본인 멘션만 가능)"""
    mention = await mention_service.mark_mention_read(db, mention_id, principal.user_id)
    if mention is None:
        raise ResourceNotFoundException("Mention")

    logger.info(f"Mention {mention_id} marked read by user {principal.user_id}")
    return {"ok": True}
