"""
채팅방 멤버십 조회

채팅방 단위의 모든 동작(입장, 메시지, 타이핑, 읽음 처리)은 먼저 이 모듈로 멤버 여부를 확인합니다.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.rooms import RoomMember
from app.models.users import User


async def is_room_member(db: AsyncSession, room_id: Optional[str], user_id: Optional[str]) -> bool:
    """나가지 않은(left_at IS NULL) 멤버 레코드가 있으면 True"""
    if not room_id or not user_id:
        return False

    query = select(RoomMember.id).where(
        RoomMember.room_id == str(room_id),
        RoomMember.user_id == str(user_id),
        RoomMember.left_at.is_(None)
    ).limit(1)
    result = await db.execute(query)
    return result.scalar_one_or_none() is not None


async def list_active_members(db: AsyncSession, room_id: str) -> List[User]:
    """채팅방의 현재 멤버(User) 목록"""
    query = (
        select(User)
        .join(RoomMember, RoomMember.user_id == User.id)
        .where(
            RoomMember.room_id == str(room_id),
            RoomMember.left_at.is_(None)
        )
    )
    result = await db.execute(query)
    return list(result.scalars().all())
