"""
WebSocket 실시간 채팅 게이트웨이

이 모듈은 FastAPI WebSocket을 사용하여 실시간 채팅 기능을 제공합니다.

주요 구성 요소:
- presence: 사용자별 연결 수 기반 접속 상태 추적
- auth: 핸드셰이크 토큰/세션 검증
- connection_manager: 연결 및 채팅방 구독 관리, 브로드캐스트
- handlers: 클라이언트 이벤트 처리
"""

from .presence import PresenceTracker
from .auth import Principal, SessionVerifier, authenticate_websocket
from .connection_manager import Connection, ConnectionManager
from .handlers import WebSocketEventHandler

__all__ = [
    "PresenceTracker",
    "Principal",
    "SessionVerifier",
    "authenticate_websocket",
    "Connection",
    "ConnectionManager",
    "WebSocketEventHandler",
]
