# WebSocket event payloads
from .events import (
    CamelModel,
    to_event,
    UserBrief,
    SenderInfo,
    ReplyPreview,
    MessagePayload,
    MentionNotice,
    ReadReceiptPayload,
    TypingPayload,
    PresencePayload,
    OnlineListPayload,
)

# Mention inbox schemas
from .mention import (
    MentionRoom,
    MentionedMessage,
    MentionResponse,
    UnreadCountResponse,
)
