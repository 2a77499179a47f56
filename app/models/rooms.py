from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, UniqueConstraint
from app.database.mysql import Base
from app.models.users import generate_id


class Room(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=True)  # 1:1 rooms have no name
    is_group = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)  # Bumped on every new message

    def __repr__(self):
        return f"<Room(id={self.id}, name={self.name}, is_group={self.is_group})>"


class RoomMember(Base):
    __tablename__ = "room_members"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_room_members_room_user"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = Column(DateTime, default=datetime.utcnow)
    left_at = Column(DateTime, nullable=True)  # NULL while the user is still a member
    last_read_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<RoomMember(room_id={self.room_id}, user_id={self.user_id}, left_at={self.left_at})>"
