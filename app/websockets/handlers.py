from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.errors import MESSAGE_CREATE, READ_RECEIPT, GatewayError, StoreFailure
from app.core.logging import get_logger, log_websocket_event
from app.schemas.events import TypingPayload, to_event
from app.services import message_service
from app.services.membership_service import is_room_member
from app.websockets.connection_manager import Connection, ConnectionManager

logger = get_logger(__name__)


class WebSocketEventHandler:
    """
    클라이언트 이벤트 처리 핸들러

    채팅방 단위 이벤트는 모두 멤버십을 먼저 확인하며, 멤버가 아니거나 페이로드가
    잘못된 경우 아무 응답 없이 무시합니다. 저장소 오류만 요청한 연결에 ``error``로 알립니다.

    멤버십 확인과 이후 저장 사이에 다른 연결의 이벤트가 끼어들 수 있습니다.
    확인은 필수지만 락은 아니며, 원자성은 저장소의 각 호출 단위로만 보장됩니다.
    """

    def __init__(self, manager: ConnectionManager, session_factory: async_sessionmaker):
        self.manager = manager
        self.session_factory = session_factory
        self._handlers = {
            "join_room": self._handle_join_room,
            "get_online_list": self._handle_get_online_list,
            "message": self._handle_message,
            "typing": self._handle_typing,
            "read_receipt": self._handle_read_receipt,
        }

    async def handle_event(self, connection: Connection, data: Any):
        """
        WebSocket으로 받은 이벤트를 처리합니다.

        Args:
            connection: 이벤트를 보낸 연결
            data: ``{"type": ..., ...}`` 형태의 클라이언트 이벤트
        """
        if not isinstance(data, dict):
            logger.warning(f"Ignoring non-object frame from user {connection.user_id}")
            return

        event_type = data.get("type")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.warning(f"Unknown event type: {event_type} from user {connection.user_id}")
            return

        # 이벤트 하나의 실패가 연결 전체를 끊지 않도록 여기서 멈춤
        try:
            await handler(connection, data)
        except SQLAlchemyError as e:
            logger.error(f"Store error while handling {event_type} from user {connection.user_id}: {e}")
        except Exception as e:
            logger.exception(f"Error handling {event_type} from user {connection.user_id}: {e}")

    async def _handle_join_room(self, connection: Connection, data: Dict[str, Any]):
        room_id = data.get("roomId")
        if not room_id:
            return

        async with self.session_factory() as db:
            allowed = await is_room_member(db, str(room_id), connection.user_id)

        if allowed:
            self.manager.join_room(connection, str(room_id))
        else:
            logger.debug(f"User {connection.user_id} not a member of room {room_id}; join ignored")

    async def _handle_get_online_list(self, connection: Connection, data: Dict[str, Any]):
        await self.manager.send_online_list(connection)

    async def _handle_message(self, connection: Connection, data: Dict[str, Any]):
        """채팅 메시지를 처리합니다."""
        room_id = data.get("roomId")
        content = data.get("content")
        text = content if isinstance(content, str) else ""
        shared_event = data.get("sharedEvent")
        has_event = message_service.is_valid_shared_event(shared_event)

        if not room_id or (text == "" and not has_event):
            return
        room_id = str(room_id)

        try:
            async with self.session_factory() as db:
                delivery = await message_service.send_message(
                    db,
                    sender_id=connection.user_id,
                    room_id=room_id,
                    content=text,
                    shared_event=shared_event if has_event else None,
                    reply_to_id=data.get("replyToId")
                )
                if delivery is None:
                    return
                await db.commit()
        except GatewayError as e:
            await self._send_error(connection, e)
            return
        except SQLAlchemyError as e:
            await self._send_error(connection, StoreFailure(MESSAGE_CREATE, str(e)))
            return

        log_websocket_event(logger, "message", connection.user_id, room_id,
                            message_id=delivery.payload.id,
                            mention_count=len(delivery.mentioned_user_ids))

        notice = to_event("mention", delivery.mention_notice)
        for user_id in delivery.mentioned_user_ids:
            await self.manager.send_to_user(user_id, notice, exclude_connection_id=connection.id)

        await self.manager.broadcast_to_room(room_id, to_event("message", delivery.payload))

    async def _handle_typing(self, connection: Connection, data: Dict[str, Any]):
        """타이핑 상태 표시를 다른 멤버에게 전달합니다 (저장하지 않음)."""
        room_id = data.get("roomId")
        if not room_id:
            return

        async with self.session_factory() as db:
            allowed = await is_room_member(db, str(room_id), connection.user_id)
        if not allowed:
            return

        payload = TypingPayload(user_id=connection.user_id, is_typing=data.get("isTyping") is True)
        await self.manager.broadcast_to_room(
            str(room_id), to_event("typing", payload), exclude_connection_id=connection.id
        )

    async def _handle_read_receipt(self, connection: Connection, data: Dict[str, Any]):
        message_id = data.get("messageId")
        if not message_id:
            return

        try:
            async with self.session_factory() as db:
                receipt = await message_service.record_read_receipt(db, str(message_id), connection.user_id)
                if receipt is None:
                    return
                await db.commit()
        except GatewayError as e:
            await self._send_error(connection, e)
            return
        except SQLAlchemyError as e:
            await self._send_error(connection, StoreFailure(READ_RECEIPT, str(e)))
            return

        await self.manager.broadcast_to_room(receipt.room_id, to_event("read_receipt", receipt))

    async def _send_error(self, connection: Connection, error: GatewayError):
        logger.error(f"{error.code} failed for user {connection.user_id}: {error.message}")
        await self.manager.send_json(connection, error.to_event())
