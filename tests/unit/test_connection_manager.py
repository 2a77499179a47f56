import pytest

from app.websockets import ConnectionManager, PresenceTracker, Principal
from tests.conftest import FakeWebSocket, BrokenWebSocket


def presence_events(websocket: FakeWebSocket, user_id: str):
    return [
        frame["type"] for frame in websocket.sent
        if frame["type"] in ("user_online", "user_offline") and frame["userId"] == user_id
    ]


class TestPresenceBroadcast:
    """접속 상태 브로드캐스트 테스트"""

    @pytest.mark.asyncio
    async def test_online_list_sent_to_new_connection(self):
        manager = ConnectionManager(PresenceTracker())
        await manager.register(FakeWebSocket(), Principal("u1", "s1"))

        websocket = FakeWebSocket()
        await manager.register(websocket, Principal("u2", "s2"))

        first = websocket.sent[0]
        assert first["type"] == "online_list"
        assert sorted(first["userIds"]) == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_multi_device_edges_only(self):
        """두 번 접속 후 두 번 끊으면 online/offline 이벤트는 한 번씩만"""
        manager = ConnectionManager(PresenceTracker())
        observer = FakeWebSocket()
        await manager.register(observer, Principal("watcher", "s0"))

        first = await manager.register(FakeWebSocket(), Principal("a", "s1"))
        second = await manager.register(FakeWebSocket(), Principal("a", "s1"))
        await manager.unregister(first)
        assert presence_events(observer, "a") == ["user_online"]

        await manager.unregister(second)
        assert presence_events(observer, "a") == ["user_online", "user_offline"]
        assert not manager.presence.has("a")

    @pytest.mark.asyncio
    async def test_reconnect_after_offline_emits_online_again(self):
        manager = ConnectionManager(PresenceTracker())
        observer = FakeWebSocket()
        await manager.register(observer, Principal("watcher", "s0"))

        connection = await manager.register(FakeWebSocket(), Principal("a", "s1"))
        await manager.unregister(connection)
        await manager.register(FakeWebSocket(), Principal("a", "s1"))

        assert presence_events(observer, "a") == ["user_online", "user_offline", "user_online"]

    @pytest.mark.asyncio
    async def test_unregister_twice_is_noop(self):
        manager = ConnectionManager(PresenceTracker())
        observer = FakeWebSocket()
        await manager.register(observer, Principal("watcher", "s0"))
        await manager.register(FakeWebSocket(), Principal("a", "s1"))
        connection = await manager.register(FakeWebSocket(), Principal("a", "s1"))

        await manager.unregister(connection)
        await manager.unregister(connection)

        # 두 번째 해제가 남은 연결의 카운트를 깎으면 안 됨
        assert manager.presence.connection_count("a") == 1
        assert presence_events(observer, "a") == ["user_online"]


class TestRoomDelivery:
    """채팅방 구독 및 전송 테스트"""

    @pytest.mark.asyncio
    async def test_broadcast_to_room_only_reaches_subscribers(self):
        manager = ConnectionManager(PresenceTracker())
        inside, outside = FakeWebSocket(), FakeWebSocket()
        subscriber = await manager.register(inside, Principal("u1", "s1"))
        await manager.register(outside, Principal("u2", "s2"))
        manager.join_room(subscriber, "room-1")
        inside.clear()
        outside.clear()

        sent = await manager.broadcast_to_room("room-1", {"type": "ping"})

        assert sent == 1
        assert inside.sent == [{"type": "ping"}]
        assert outside.sent == []

    @pytest.mark.asyncio
    async def test_broadcast_to_room_excludes_connection(self):
        manager = ConnectionManager(PresenceTracker())
        a_ws, b_ws = FakeWebSocket(), FakeWebSocket()
        a = await manager.register(a_ws, Principal("u1", "s1"))
        b = await manager.register(b_ws, Principal("u2", "s2"))
        manager.join_room(a, "room-1")
        manager.join_room(b, "room-1")
        a_ws.clear()
        b_ws.clear()

        await manager.broadcast_to_room("room-1", {"type": "typing"}, exclude_connection_id=a.id)

        assert a_ws.sent == []
        assert b_ws.sent == [{"type": "typing"}]

    @pytest.mark.asyncio
    async def test_send_to_user_reaches_every_device(self):
        manager = ConnectionManager(PresenceTracker())
        phone, laptop, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        await manager.register(phone, Principal("u1", "s1"))
        await manager.register(laptop, Principal("u1", "s1"))
        await manager.register(other, Principal("u2", "s2"))
        for websocket in (phone, laptop, other):
            websocket.clear()

        sent = await manager.send_to_user("u1", {"type": "mention"})

        assert sent == 2
        assert phone.sent == laptop.sent == [{"type": "mention"}]
        assert other.sent == []

    @pytest.mark.asyncio
    async def test_failed_send_does_not_stop_broadcast(self):
        manager = ConnectionManager(PresenceTracker())
        broken = await manager.register(BrokenWebSocket(), Principal("u1", "s1"))
        healthy_ws = FakeWebSocket()
        healthy = await manager.register(healthy_ws, Principal("u2", "s2"))
        manager.join_room(broken, "room-1")
        manager.join_room(healthy, "room-1")
        healthy_ws.clear()

        sent = await manager.broadcast_to_room("room-1", {"type": "message"})

        assert sent == 1
        assert healthy_ws.sent == [{"type": "message"}]

    @pytest.mark.asyncio
    async def test_unregister_removes_room_subscription(self):
        manager = ConnectionManager(PresenceTracker())
        connection = await manager.register(FakeWebSocket(), Principal("u1", "s1"))
        manager.join_room(connection, "room-1")
        assert manager.get_room_connection_count("room-1") == 1

        await manager.unregister(connection)

        assert manager.get_room_connection_count("room-1") == 0
        assert manager.get_user_connections("u1") == []
