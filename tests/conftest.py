import os

# app 모듈을 import하기 전에 테스트 환경 설정
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime
from types import SimpleNamespace
from typing import AsyncGenerator, Dict, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (테이블 등록)
from app.database.mysql import Base
from app.main import create_app
from app.models import User, UserSession, Room, RoomMember
from app.utils.auth import create_access_token
from app.websockets import (
    PresenceTracker,
    ConnectionManager,
    Principal,
    SessionVerifier,
    WebSocketEventHandler,
)


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeWebSocket:
    """전송된 JSON 프레임을 기록하는 가짜 WebSocket"""

    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)

    def events(self, event_type):
        return [frame for frame in self.sent if frame.get("type") == event_type]

    def clear(self):
        self.sent.clear()


class BrokenWebSocket(FakeWebSocket):
    """전송이 항상 실패하는 WebSocket (끊긴 클라이언트)"""

    async def send_json(self, data):
        raise RuntimeError("connection closed")


@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def seed(session_factory) -> SimpleNamespace:
    """
    기본 데이터

    - room(개발팀): Kim, Park, Han 멤버 / Choi는 나간 멤버
    - other_room: Lee만 멤버
    """
    async with session_factory() as db:
        kim = User(email="kim@example.com", name="Kim")
        park = User(email="park@example.com", name="Park")
        han = User(email="han@example.com", name="Han")
        choi = User(email="choi@example.com", name="Choi")
        lee = User(email="lee@example.com", name="Lee")
        db.add_all([kim, park, han, choi, lee])
        await db.flush()

        room = Room(name="개발팀", is_group=True)
        other_room = Room(name="기획팀", is_group=True)
        db.add_all([room, other_room])
        await db.flush()

        db.add_all([
            RoomMember(room_id=room.id, user_id=kim.id),
            RoomMember(room_id=room.id, user_id=park.id),
            RoomMember(room_id=room.id, user_id=han.id),
            RoomMember(room_id=room.id, user_id=choi.id, left_at=datetime.utcnow()),
            RoomMember(room_id=other_room.id, user_id=lee.id),
        ])

        sessions: Dict[str, UserSession] = {}
        for user in (kim, park, han, choi, lee):
            sessions[user.id] = UserSession(user_id=user.id)
            db.add(sessions[user.id])
        await db.commit()

    return SimpleNamespace(
        kim=kim, park=park, han=han, choi=choi, lee=lee,
        room=room, other_room=other_room, sessions=sessions
    )


def make_token(user: User, session: Optional[UserSession]) -> str:
    return create_access_token({"userId": user.id, "sessionId": session.id if session else "missing"})


def principal_for(seed: SimpleNamespace, user: User) -> Principal:
    return Principal(user_id=user.id, session_id=seed.sessions[user.id].id)


@pytest.fixture
def presence() -> PresenceTracker:
    return PresenceTracker()


@pytest.fixture
def manager(presence) -> ConnectionManager:
    return ConnectionManager(presence)


@pytest_asyncio.fixture
async def handler(manager, session_factory) -> WebSocketEventHandler:
    return WebSocketEventHandler(manager, session_factory)


@pytest_asyncio.fixture
async def gateway(seed, manager, handler):
    """사용자 이름으로 연결을 만들고 채팅방에 입장시키는 헬퍼"""

    async def connect(user: User, join_room: bool = True):
        websocket = FakeWebSocket()
        connection = await manager.register(websocket, principal_for(seed, user))
        if join_room:
            await handler.handle_event(connection, {"type": "join_room", "roomId": seed.room.id})
        return connection, websocket

    return connect


@pytest_asyncio.fixture
async def api_app(session_factory):
    return create_app(
        session_factory=session_factory,
        session_verifier=SessionVerifier(session_factory),
        use_lifespan=False,
        enable_metrics=False
    )


@pytest_asyncio.fixture
async def client(api_app) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
