import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from app.core.logging import get_logger, log_websocket_event
from app.schemas.events import OnlineListPayload, PresencePayload, to_event
from app.websockets.auth import Principal
from app.websockets.presence import PresenceTracker

logger = get_logger(__name__)


@dataclass(eq=False)
class Connection:
    """인증된 WebSocket 연결 하나"""
    websocket: WebSocket
    principal: Principal
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rooms: Set[str] = field(default_factory=set)

    @property
    def user_id(self) -> str:
        return self.principal.user_id


class ConnectionManager:
    """
    연결/채팅방 구독 관리와 이벤트 전송

    전송은 fire-and-forget입니다. 실패한 전송은 로그만 남기고, 연결 정리는
    해당 연결의 수신 루프가 끝날 때 ``unregister``에서 이루어집니다.
    """

    def __init__(self, presence: PresenceTracker):
        self.presence = presence
        # 연결 ID별 연결: {connection_id: Connection}
        self.connections: Dict[str, Connection] = {}
        # 채팅방별 구독 연결: {room_id: {connection_id}}
        self.room_connections: Dict[str, Set[str]] = {}
        # 사용자별 연결: {user_id: {connection_id}}
        self.user_connections: Dict[str, Set[str]] = {}

    async def register(self, websocket: WebSocket, principal: Principal) -> Connection:
        """
        인증된 연결을 등록합니다.

        자신에게 온라인 목록을 보내고, 사용자의 첫 연결이면 모두에게 ``user_online``을 알립니다.
        """
        connection = Connection(websocket=websocket, principal=principal)
        self.connections[connection.id] = connection
        self.user_connections.setdefault(connection.user_id, set()).add(connection.id)

        count = self.presence.add(connection.user_id)
        log_websocket_event(logger, "connected", connection.user_id,
                            connection_id=connection.id, connection_count=count)

        await self.send_online_list(connection)
        if count == 1:
            await self.broadcast(to_event("user_online", PresencePayload(user_id=connection.user_id)))
        return connection

    async def unregister(self, connection: Connection):
        """연결을 제거하고, 사용자의 마지막 연결이었으면 ``user_offline``을 알립니다."""
        if self.connections.pop(connection.id, None) is None:
            return

        for room_id in connection.rooms:
            subscribers = self.room_connections.get(room_id)
            if subscribers is not None:
                subscribers.discard(connection.id)
                # 채팅방에 구독자가 없으면 방 자체를 제거
                if not subscribers:
                    del self.room_connections[room_id]
        connection.rooms.clear()

        user_conns = self.user_connections.get(connection.user_id)
        if user_conns is not None:
            user_conns.discard(connection.id)
            if not user_conns:
                del self.user_connections[connection.user_id]

        remaining = self.presence.remove(connection.user_id)
        log_websocket_event(logger, "disconnected", connection.user_id,
                            connection_id=connection.id, connection_count=remaining)

        if remaining == 0:
            await self.broadcast(to_event("user_offline", PresencePayload(user_id=connection.user_id)))

    def join_room(self, connection: Connection, room_id: str):
        """채팅방 구독 (멤버십 확인은 호출자 책임)"""
        room_id = str(room_id)
        connection.rooms.add(room_id)
        self.room_connections.setdefault(room_id, set()).add(connection.id)
        log_websocket_event(logger, "join_room", connection.user_id, room_id, connection_id=connection.id)

    async def send_online_list(self, connection: Connection):
        await self.send_json(connection, to_event(
            "online_list", OnlineListPayload(user_ids=self.presence.list_all())
        ))

    async def send_json(self, connection: Connection, data: Dict[str, Any]) -> bool:
        """특정 연결에 JSON 데이터를 전송합니다."""
        try:
            await connection.websocket.send_json(data)
            return True
        except Exception as e:
            logger.error(f"Failed to send {data.get('type')} to connection {connection.id}: {e}")
            return False

    async def _send_many(self, connection_ids: List[str], data: Dict[str, Any]) -> int:
        sent = 0
        for connection_id in connection_ids:
            connection = self.connections.get(connection_id)
            # 전송 도중 끊긴 연결은 건너뜀
            if connection is None:
                continue
            if await self.send_json(connection, data):
                sent += 1
        return sent

    async def broadcast(self, data: Dict[str, Any]) -> int:
        """연결된 모든 클라이언트에 전송"""
        return await self._send_many(list(self.connections), data)

    async def broadcast_to_room(self, room_id: str, data: Dict[str, Any],
                                exclude_connection_id: Optional[str] = None) -> int:
        """채팅방을 구독 중인 모든 연결에 브로드캐스트합니다."""
        targets = [
            connection_id for connection_id in self.room_connections.get(str(room_id), ())
            if connection_id != exclude_connection_id
        ]
        return await self._send_many(targets, data)

    async def send_to_user(self, user_id: str, data: Dict[str, Any],
                           exclude_connection_id: Optional[str] = None) -> int:
        """특정 사용자의 모든 연결에 전송합니다."""
        targets = [
            connection_id for connection_id in self.user_connections.get(str(user_id), ())
            if connection_id != exclude_connection_id
        ]
        return await self._send_many(targets, data)

    def get_room_connection_count(self, room_id: str) -> int:
        return len(self.room_connections.get(str(room_id), ()))

    def get_user_connections(self, user_id: str) -> List[Connection]:
        return [
            self.connections[connection_id]
            for connection_id in self.user_connections.get(str(user_id), ())
            if connection_id in self.connections
        ]
