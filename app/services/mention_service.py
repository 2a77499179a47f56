"""
멘션 수신함 서비스

사용자가 받은 @멘션 목록 조회, 읽음 처리, 안 읽은 개수 조회
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import DELETED_MESSAGE_PLACEHOLDER
from app.models.messages import Message, Mention
from app.models.rooms import Room
from app.models.users import User
from app.schemas.mention import MentionResponse, MentionedMessage, MentionRoom
from app.schemas.events import UserBrief
from app.services.membership_service import list_active_members

MENTION_LIST_LIMIT = 100
DEFAULT_ROOM_NAME = "채팅방"


async def _resolve_room_name(db: AsyncSession, room: Room, viewer_id: str) -> str:
    """이름 없는 채팅방은 다른 멤버 이름을 이어 붙여 표시"""
    if room.name:
        return room.name
    others = [member.name for member in await list_active_members(db, room.id) if member.id != viewer_id]
    return ", ".join(others) or DEFAULT_ROOM_NAME


async def list_user_mentions(db: AsyncSession, user_id: str, limit: int = MENTION_LIST_LIMIT) -> List[MentionResponse]:
    """최근 멘션 목록 (메시지 작성 시각 내림차순)"""
    query = (
        select(Mention, Message, Room, User)
        .join(Message, Message.id == Mention.message_id)
        .join(Room, Room.id == Message.room_id)
        .outerjoin(User, User.id == Message.sender_id)
        .where(Mention.user_id == str(user_id))
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    result = await db.execute(query)

    room_names = {}
    mentions = []
    for mention, message, room, sender in result.all():
        if room.id not in room_names:
            room_names[room.id] = await _resolve_room_name(db, room, str(user_id))

        mentions.append(MentionResponse(
            id=mention.id,
            message_id=mention.message_id,
            read_at=mention.read_at,
            message=MentionedMessage(
                id=message.id,
                content=DELETED_MESSAGE_PLACEHOLDER if message.is_deleted else message.content,
                created_at=message.created_at,
                sender=UserBrief(id=sender.id, name=sender.name) if sender else None,
                room=MentionRoom(id=room.id, name=room_names[room.id])
            )
        ))
    return mentions


async def mark_mention_read(db: AsyncSession, mention_id: str, user_id: str) -> Optional[Mention]:
    """본인 멘션이 아니면 None"""
    mention = await db.get(Mention, str(mention_id))
    if mention is None or mention.user_id != str(user_id):
        return None

    mention.read_at = datetime.utcnow()
    await db.commit()
    return mention


async def count_unread_mentions(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count(Mention.id)).where(
            Mention.user_id == str(user_id),
            Mention.read_at.is_(None)
        )
    )
    return result.scalar_one()
