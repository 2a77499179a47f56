"""
WebSocket 엔드포인트 통합 테스트

Starlette TestClient로 실제 핸드셰이크/수신 루프/연결 해제 흐름을 검증합니다.
세션 검증은 DB 대신 고정 토큰 테이블을 사용합니다.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.main import create_app
from app.websockets import Principal


class FakeVerifier:
    """고정 토큰 -> Principal 매핑"""

    def __init__(self, tokens):
        self.tokens = tokens

    async def verify(self, token):
        return self.tokens.get(token)


TOKENS = {
    "token-a": Principal(user_id="user-a", session_id="session-a"),
    "token-b": Principal(user_id="user-b", session_id="session-b"),
}


@pytest.fixture
def client():
    app = create_app(
        session_verifier=FakeVerifier(TOKENS),
        use_lifespan=False,
        enable_metrics=False
    )
    with TestClient(app) as client:
        yield client


def connect(client, token):
    return client.websocket_connect(f"/ws?token={token}")


def skip_greeting(websocket):
    """접속 직후의 online_list와 자신의 user_online을 소비"""
    assert websocket.receive_json()["type"] == "online_list"
    assert websocket.receive_json()["type"] == "user_online"


class TestHandshake:
    """핸드셰이크 인증 테스트"""

    @pytest.mark.parametrize("path", ["/ws", "/ws?token=", "/ws?token=forged"])
    def test_rejects_unauthenticated(self, client, path):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(path) as websocket:
                websocket.receive_json()

        assert exc_info.value.code == 1008

    def test_online_list_is_first_frame(self, client):
        with connect(client, "token-a") as websocket:
            assert websocket.receive_json() == {"type": "online_list", "userIds": ["user-a"]}
            assert websocket.receive_json() == {"type": "user_online", "userId": "user-a"}


class TestPresence:
    """접속 상태 이벤트 테스트"""

    def test_other_user_online_and_offline(self, client):
        with connect(client, "token-a") as watcher:
            skip_greeting(watcher)

            with connect(client, "token-b") as other:
                first = other.receive_json()
                assert sorted(first["userIds"]) == ["user-a", "user-b"]
                assert watcher.receive_json() == {"type": "user_online", "userId": "user-b"}

            assert watcher.receive_json() == {"type": "user_offline", "userId": "user-b"}

    def test_offline_only_after_last_device(self, client):
        with connect(client, "token-a") as watcher:
            skip_greeting(watcher)

            with connect(client, "token-b") as phone:
                skip_greeting(phone)
                assert watcher.receive_json() == {"type": "user_online", "userId": "user-b"}

                with connect(client, "token-b") as laptop:
                    assert laptop.receive_json()["type"] == "online_list"

                # 한 기기가 끊겨도 offline 이벤트 없이 바로 목록 응답이 와야 함
                watcher.send_json({"type": "get_online_list"})
                frame = watcher.receive_json()
                assert frame["type"] == "online_list"
                assert "user-b" in frame["userIds"]

            assert watcher.receive_json() == {"type": "user_offline", "userId": "user-b"}


class TestFrames:
    """수신 프레임 처리 테스트"""

    def test_invalid_json_reports_error_and_keeps_connection(self, client):
        with connect(client, "token-a") as websocket:
            skip_greeting(websocket)

            websocket.send_text("{not json")
            error = websocket.receive_json()
            assert error["type"] == "error"
            assert error["code"] == "INVALID_PAYLOAD"

            websocket.send_json({"type": "get_online_list"})
            assert websocket.receive_json() == {"type": "online_list", "userIds": ["user-a"]}

    def test_unknown_event_ignored(self, client):
        with connect(client, "token-a") as websocket:
            skip_greeting(websocket)

            websocket.send_json({"type": "dance"})
            websocket.send_json({"type": "get_online_list"})

            assert websocket.receive_json()["type"] == "online_list"


class TestOnlineApi:
    """온라인 목록 HTTP API 테스트"""

    def test_requires_bearer_token(self, client):
        response = client.get("/online")

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"

    def test_lists_connected_users(self, client):
        with connect(client, "token-b") as websocket:
            skip_greeting(websocket)

            response = client.get("/online", headers={"Authorization": "Bearer token-a"})

        assert response.status_code == 200
        assert response.json() == {"userIds": ["user-b"]}
