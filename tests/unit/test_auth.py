from datetime import timedelta

import pytest

from app.models import UserSession
from app.utils.auth import create_access_token, decode_access_token, extract_bearer_token
from app.websockets.auth import SessionVerifier, Principal
from tests.conftest import make_token


class TestAuthUtils:
    """인증 유틸리티 테스트"""

    def test_jwt_token_creation_and_decode(self):
        token = create_access_token({"userId": "u1", "sessionId": "s1"})

        decoded = decode_access_token(token)
        assert decoded is not None
        assert decoded["userId"] == "u1"
        assert decoded["sessionId"] == "s1"
        assert decoded["type"] == "access"

    def test_invalid_token_decode(self):
        assert decode_access_token("invalid.token.here") is None

    def test_expired_token_decode(self):
        token = create_access_token({"userId": "u1", "sessionId": "s1"}, expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None

    def test_extract_bearer_token(self):
        assert extract_bearer_token("Bearer abc") == "abc"
        assert extract_bearer_token("Basic abc") is None
        assert extract_bearer_token("Bearer ") is None
        assert extract_bearer_token(None) is None


class TestSessionVerifier:
    """세션 검증기 테스트"""

    @pytest.mark.asyncio
    async def test_verify_active_session(self, session_factory, seed):
        verifier = SessionVerifier(session_factory)
        token = make_token(seed.kim, seed.sessions[seed.kim.id])

        principal = await verifier.verify(token)

        assert principal == Principal(user_id=seed.kim.id, session_id=seed.sessions[seed.kim.id].id)

    @pytest.mark.asyncio
    async def test_verify_rejects_unknown_session(self, session_factory, seed):
        verifier = SessionVerifier(session_factory)
        assert await verifier.verify(make_token(seed.kim, None)) is None

    @pytest.mark.asyncio
    async def test_verify_rejects_session_of_other_user(self, session_factory, seed):
        verifier = SessionVerifier(session_factory)
        # Park의 세션 ID를 Kim의 토큰에 넣은 경우
        token = make_token(seed.kim, seed.sessions[seed.park.id])
        assert await verifier.verify(token) is None

    @pytest.mark.asyncio
    async def test_verify_rejects_logged_out_session(self, session_factory, seed):
        verifier = SessionVerifier(session_factory)
        session = seed.sessions[seed.kim.id]
        token = make_token(seed.kim, session)

        async with session_factory() as db:
            await db.delete(await db.get(UserSession, session.id))
            await db.commit()

        assert await verifier.verify(token) is None

    @pytest.mark.asyncio
    async def test_verify_rejects_missing_claims(self, session_factory, seed):
        verifier = SessionVerifier(session_factory)
        token = create_access_token({"userId": seed.kim.id})
        assert await verifier.verify(token) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "garbage"])
    async def test_verify_rejects_bad_tokens(self, session_factory, token):
        verifier = SessionVerifier(session_factory)
        assert await verifier.verify(token) is None
