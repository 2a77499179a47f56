from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from jose import JWTError, jwt

from app.core.config import settings


def create_access_token(data: Dict[str, Any],
                        expires_delta: Optional[timedelta] = None) -> str:
    """JWT 액세스 토큰 생성

    data에는 ``userId``와 ``sessionId`` 클레임이 들어갑니다.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(
            hours=settings.access_token_expire_hours)

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key,
                             algorithm=settings.algorithm)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """JWT 액세스 토큰 디코드 (서명/만료 검증 실패 시 None)"""
    try:
        payload = jwt.decode(token, settings.secret_key,
                             algorithms=[settings.algorithm])
    except JWTError:
        return None

    # 액세스 토큰인지 확인
    if payload.get("type") != "access":
        return None
    return payload


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """``Authorization: Bearer <token>`` 헤더에서 토큰만 추출"""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.removeprefix("Bearer ").strip()
    return token or None
