"""
WebSocket 서버 -> 클라이언트 이벤트 페이로드 스키마

필드는 Python에서는 snake_case, 전송 시에는 camelCase(roomId, isTyping 등)로 직렬화됩니다.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def to_event(event_type: str, payload: BaseModel) -> Dict[str, Any]:
    """``{"type": ..., **payload}`` 형태의 전송용 dict 생성"""
    return {"type": event_type, **payload.model_dump(by_alias=True, mode="json")}


class UserBrief(CamelModel):
    id: str
    name: str


class SenderInfo(UserBrief):
    email: str


class ReplyPreview(CamelModel):
    """답장 대상 메시지의 요약 (삭제된 경우 내용은 placeholder)"""
    id: str
    content: str
    sender: Optional[UserBrief] = None


class MessagePayload(CamelModel):
    """채팅방에 브로드캐스트되는 메시지 전체 정보"""
    id: str
    room_id: str
    sender_id: str
    content: str
    event_title: Optional[str] = None
    event_start_at: Optional[datetime] = None
    event_end_at: Optional[datetime] = None
    event_description: Optional[str] = None
    reply_to_id: Optional[str] = None
    created_at: datetime
    deleted_at: Optional[datetime] = None
    sender: SenderInfo
    read_count: int = 0
    reply_to: Optional[ReplyPreview] = None
    # 리액션/투표는 별도 기능에서 채워짐
    reactions: List[Any] = Field(default_factory=list)
    poll: Optional[Any] = None


class MentionNotice(CamelModel):
    room_id: str
    message_id: str
    sender_name: str
    content: str


class ReadReceiptPayload(CamelModel):
    id: str
    message_id: str
    user_id: str
    read_at: datetime
    room_id: str


class TypingPayload(CamelModel):
    user_id: str
    is_typing: bool


class PresencePayload(CamelModel):
    user_id: str


class OnlineListPayload(CamelModel):
    user_ids: List[str]
