from .users import User, UserSession
from .rooms import Room, RoomMember
from .messages import Message, Mention, ReadReceipt

__all__ = [
    "User",
    "UserSession",
    "Room",
    "RoomMember",
    "Message",
    "Mention",
    "ReadReceipt",
]
