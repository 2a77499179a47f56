from dataclasses import dataclass
from typing import Optional

from fastapi import WebSocket, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.logging import get_logger, log_authentication_event
from app.models.users import UserSession
from app.utils.auth import decode_access_token

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """인증된 연결의 주체 (연결이 끊길 때까지 변하지 않음)"""
    user_id: str
    session_id: str


class SessionVerifier:
    """bearer 토큰을 검증하고 활성 세션과 대조합니다."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def verify(self, token: Optional[str]) -> Optional[Principal]:
        """
        토큰 서명/만료를 확인한 뒤 sessionId가 해당 userId의 활성 세션인지 조회합니다.

        Returns:
            Principal: 유효한 경우, 그 외에는 None
        """
        if not token:
            return None

        payload = decode_access_token(token)
        if not payload:
            return None

        user_id = payload.get("userId")
        session_id = payload.get("sessionId")
        if not user_id or not session_id:
            return None

        try:
            async with self.session_factory() as db:
                query = select(UserSession.id).where(
                    UserSession.id == str(session_id),
                    UserSession.user_id == str(user_id)
                )
                result = await db.execute(query)
                if result.scalar_one_or_none() is None:
                    return None
        except SQLAlchemyError as e:
            logger.error(f"Session lookup failed for user {user_id}: {e}")
            return None

        return Principal(user_id=str(user_id), session_id=str(session_id))


async def authenticate_websocket(websocket: WebSocket, verifier: SessionVerifier) -> Optional[Principal]:
    """
    핸드셰이크 쿼리 파라미터 ``token``으로 연결을 인증합니다.

    인증에 실패하면 accept 전에 정책 위반(1008)으로 연결을 닫고 None을 반환합니다.
    """
    token = websocket.query_params.get("token")
    principal = await verifier.verify(token)

    if principal is None:
        log_authentication_event(logger, "websocket_handshake", success=False,
                                 reason="missing token" if not token else "invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None

    log_authentication_event(logger, "websocket_handshake", user_id=principal.user_id)
    return principal
