from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, UniqueConstraint, Index
from app.database.mysql import Base
from app.models.users import generate_id


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_room_created", "room_id", "created_at"),  # For room message history
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)

    # Shared event (calendar card) attached to the message
    event_title = Column(String(255), nullable=True)
    event_start_at = Column(DateTime, nullable=True)
    event_end_at = Column(DateTime, nullable=True)
    event_description = Column(Text, nullable=True)

    reply_to_id = Column(String(36), ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)  # Soft delete marker

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self):
        return f"<Message(id={self.id}, room_id={self.room_id}, sender_id={self.sender_id})>"


class Mention(Base):
    __tablename__ = "mentions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_mentions_message_user"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    message_id = Column(String(36), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Mention(message_id={self.message_id}, user_id={self.user_id})>"


class ReadReceipt(Base):
    __tablename__ = "read_receipts"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_read_receipts_message_user"),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    message_id = Column(String(36), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ReadReceipt(message_id={self.message_id}, user_id={self.user_id})>"
