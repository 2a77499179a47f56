from datetime import datetime
from typing import Optional
from pydantic import Field

from app.schemas.events import CamelModel, UserBrief


class MentionRoom(CamelModel):
    id: str
    name: str


class MentionedMessage(CamelModel):
    id: str
    content: str = Field(..., description="메시지 내용 (삭제된 경우 placeholder)")
    created_at: datetime
    sender: Optional[UserBrief] = None
    room: MentionRoom


class MentionResponse(CamelModel):
    """내 멘션 목록 항목"""
    id: str
    message_id: str
    read_at: Optional[datetime] = None
    message: MentionedMessage


class UnreadCountResponse(CamelModel):
    count: int = Field(..., ge=0, description="읽지 않은 멘션 수")
