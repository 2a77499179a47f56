"""
API Dependencies

FastAPI dependency functions for database sessions and authentication
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthenticationException
from app.utils.auth import extract_bearer_token
from app.websockets.auth import Principal


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """애플리케이션에 주입된 세션 팩토리로 DB 세션 생성"""
    async with request.app.state.session_factory() as session:
        yield session


async def get_current_principal(
    request: Request,
    authorization: Optional[str] = Header(default=None)
) -> Principal:
    """
    ``Authorization: Bearer`` 토큰으로 현재 사용자를 확인합니다.

    Raises:
        AuthenticationException: 토큰이 없거나 활성 세션이 아닌 경우
    """
    token = extract_bearer_token(authorization)
    if not token:
        raise AuthenticationException("Unauthorized")

    principal = await request.app.state.session_verifier.verify(token)
    if principal is None:
        raise AuthenticationException("Invalid or expired token")
    return principal


CurrentPrincipal = Depends(get_current_principal)
