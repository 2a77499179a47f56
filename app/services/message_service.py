"""
Message service layer.

Handles message creation (shared events, replies, mentions) and read receipts.
All functions work inside the caller's session; the caller commits once the
whole operation succeeded so other clients never observe partial state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SHARED_EVENT_PLACEHOLDER, DELETED_MESSAGE_PLACEHOLDER
from app.core.errors import MESSAGE_CREATE, READ_RECEIPT, StoreFailure, MessageNotFound
from app.models.messages import Message, Mention, ReadReceipt
from app.models.rooms import Room, RoomMember
from app.models.users import User
from app.schemas.events import (
    MessagePayload,
    MentionNotice,
    ReadReceiptPayload,
    ReplyPreview,
    SenderInfo,
    UserBrief,
)
from app.services.membership_service import is_room_member, list_active_members
from app.utils.mention_utils import extract_mention_names
from app.utils.time_utils import parse_timestamp


@dataclass
class MessageDelivery:
    """저장된 메시지와 함께 전송해야 할 이벤트 정보"""
    payload: MessagePayload
    mention_notice: MentionNotice
    mentioned_user_ids: List[str] = field(default_factory=list)


def is_valid_shared_event(shared_event: Any) -> bool:
    """title, startAt, endAt이 모두 있어야 유효한 공유 일정"""
    return (
        isinstance(shared_event, dict)
        and shared_event.get("title") is not None
        and shared_event.get("startAt") is not None
        and shared_event.get("endAt") is not None
    )


# =============================================================================
# Message CRUD Operations
# =============================================================================

async def find_message_by_id(db: AsyncSession, message_id: Optional[str]) -> Optional[Message]:
    """메시지 ID로 조회"""
    if not message_id:
        return None
    return await db.get(Message, str(message_id))


def build_message(
    room_id: str,
    sender_id: str,
    content: str,
    shared_event: Optional[Dict[str, Any]] = None,
    reply_to_id: Optional[Any] = None,
    created_at: Optional[datetime] = None
) -> Message:
    """저장할 Message 레코드 구성 (공유 일정만 있으면 내용은 placeholder)"""
    has_event = is_valid_shared_event(shared_event)
    message = Message(
        room_id=str(room_id),
        sender_id=str(sender_id),
        content=content or (SHARED_EVENT_PLACEHOLDER if has_event else ""),
        created_at=created_at or datetime.utcnow()
    )

    if has_event:
        try:
            message.event_start_at = parse_timestamp(shared_event["startAt"])
            message.event_end_at = parse_timestamp(shared_event["endAt"])
        except ValueError as e:
            raise StoreFailure(MESSAGE_CREATE, str(e)) from e
        message.event_title = str(shared_event["title"])
        description = shared_event.get("description")
        message.event_description = str(description) if description is not None else None

    if reply_to_id:
        message.reply_to_id = str(reply_to_id)

    return message


async def create_message(
    db: AsyncSession,
    room_id: str,
    sender_id: str,
    content: str,
    shared_event: Optional[Dict[str, Any]] = None,
    reply_to_id: Optional[Any] = None,
    created_at: Optional[datetime] = None
) -> Message:
    """메시지 저장 (flush만 하고 커밋하지 않음)"""
    message = build_message(room_id, sender_id, content, shared_event, reply_to_id, created_at=created_at)
    db.add(message)
    await db.flush()
    return message


async def touch_room(db: AsyncSession, room_id: str, now: datetime) -> None:
    """채팅방 updated_at 갱신 (목록 정렬용)"""
    await db.execute(
        update(Room).where(Room.id == str(room_id)).values(updated_at=now)
    )


async def mark_room_read(db: AsyncSession, room_id: str, user_id: str, now: datetime) -> None:
    """사용자의 마지막 읽은 시각 갱신"""
    await db.execute(
        update(RoomMember)
        .where(RoomMember.room_id == str(room_id), RoomMember.user_id == str(user_id))
        .values(last_read_at=now)
    )


async def create_mentions(db: AsyncSession, message: Message, content: str) -> List[User]:
    """
    본문의 ``@이름`` 토큰과 정확히 일치하는(대소문자 구분) 현재 멤버에게 멘션 생성

    같은 사용자는 토큰이 여러 번 등장해도 한 번만 기록합니다.
    """
    names = set(extract_mention_names(content))
    if not names:
        return []

    mentioned: List[User] = []
    seen = set()
    for member in await list_active_members(db, message.room_id):
        if member.name in names and member.id not in seen:
            seen.add(member.id)
            db.add(Mention(message_id=message.id, user_id=member.id))
            mentioned.append(member)

    if mentioned:
        await db.flush()
    return mentioned


async def build_reply_preview(db: AsyncSession, reply_message: Optional[Message]) -> Optional[ReplyPreview]:
    """답장 미리보기 (삭제된 원본은 내용 대신 placeholder)"""
    if reply_message is None:
        return None

    reply_sender = await db.get(User, reply_message.sender_id)
    return ReplyPreview(
        id=reply_message.id,
        content=DELETED_MESSAGE_PLACEHOLDER if reply_message.is_deleted else reply_message.content,
        sender=UserBrief(id=reply_sender.id, name=reply_sender.name) if reply_sender else None
    )


async def send_message(
    db: AsyncSession,
    sender_id: str,
    room_id: str,
    content: str,
    shared_event: Optional[Dict[str, Any]] = None,
    reply_to_id: Optional[Any] = None
) -> Optional[MessageDelivery]:
    """
    메시지 생성 파이프라인

    멤버가 아니면 아무것도 하지 않고 None을 반환합니다. 저장소 오류는
    ``StoreFailure``(code=MESSAGE_CREATE)로 올라가며, 커밋은 호출자가 합니다.

    Args:
        db: 데이터베이스 세션
        sender_id: 보낸 사용자 ID
        room_id: 채팅방 ID
        content: 메시지 본문 (공유 일정만 있으면 빈 문자열 가능)
        shared_event: {title, startAt, endAt, description?}
        reply_to_id: 답장 대상 메시지 ID

    Returns:
        MessageDelivery: 브로드캐스트할 메시지와 멘션 대상
    """
    if not await is_room_member(db, room_id, sender_id):
        return None

    sender = await db.get(User, str(sender_id))
    if sender is None:
        raise StoreFailure(MESSAGE_CREATE, f"User {sender_id} not found")

    reply_message = None
    if reply_to_id:
        reply_message = await find_message_by_id(db, reply_to_id)
        if reply_message is None or reply_message.room_id != str(room_id):
            raise StoreFailure(MESSAGE_CREATE, "Reply target message not found in this room")

    now = datetime.utcnow()
    message = await create_message(db, room_id, sender_id, content, shared_event, reply_to_id, created_at=now)

    await touch_room(db, room_id, now)
    await mark_room_read(db, room_id, sender_id, now)

    mentioned = await create_mentions(db, message, content)

    payload = MessagePayload(
        id=message.id,
        room_id=message.room_id,
        sender_id=message.sender_id,
        content=message.content,
        event_title=message.event_title,
        event_start_at=message.event_start_at,
        event_end_at=message.event_end_at,
        event_description=message.event_description,
        reply_to_id=message.reply_to_id,
        created_at=message.created_at,
        deleted_at=message.deleted_at,
        sender=SenderInfo(id=sender.id, name=sender.name, email=sender.email),
        read_count=0,
        reply_to=await build_reply_preview(db, reply_message),
    )
    notice = MentionNotice(
        room_id=message.room_id,
        message_id=message.id,
        sender_name=sender.name,
        content=content
    )
    return MessageDelivery(
        payload=payload,
        mention_notice=notice,
        mentioned_user_ids=[user.id for user in mentioned]
    )


# =============================================================================
# Read Receipts
# =============================================================================

async def find_read_receipt(db: AsyncSession, message_id: str, user_id: str) -> Optional[ReadReceipt]:
    result = await db.execute(
        select(ReadReceipt).where(
            ReadReceipt.message_id == str(message_id),
            ReadReceipt.user_id == str(user_id)
        )
    )
    return result.scalar_one_or_none()


async def upsert_read_receipt(db: AsyncSession, message_id: str, user_id: str) -> ReadReceipt:
    """(message_id, user_id)당 한 건만 생성, 이미 있으면 기존 레코드 반환"""
    existing = await find_read_receipt(db, message_id, user_id)
    if existing:
        return existing

    receipt = ReadReceipt(message_id=str(message_id), user_id=str(user_id), read_at=datetime.utcnow())
    db.add(receipt)
    try:
        await db.flush()
    except IntegrityError:
        # 다른 연결이 먼저 생성한 경우
        await db.rollback()
        existing = await find_read_receipt(db, message_id, user_id)
        if existing is None:
            raise
        return existing
    return receipt


async def record_read_receipt(db: AsyncSession, message_id: str, user_id: str) -> Optional[ReadReceiptPayload]:
    """
    메시지 읽음 처리

    메시지가 없으면 ``MessageNotFound``를, 채팅방 멤버가 아니면 None을 반환합니다.
    """
    message = await find_message_by_id(db, message_id)
    if message is None:
        raise MessageNotFound(READ_RECEIPT, str(message_id))

    room_id = message.room_id
    if not await is_room_member(db, room_id, user_id):
        return None

    receipt = await upsert_read_receipt(db, message.id, user_id)
    return ReadReceiptPayload(
        id=receipt.id,
        message_id=receipt.message_id,
        user_id=receipt.user_id,
        read_at=receipt.read_at,
        room_id=room_id
    )
