"""
온라인 상태 조회 API

WebSocket ``get_online_list`` 이벤트와 같은 정보를 HTTP로 제공합니다.
"""

from fastapi import APIRouter, Request

from app.api.dependencies import CurrentPrincipal
from app.schemas.events import OnlineListPayload
from app.websockets.auth import Principal

router = APIRouter(prefix="/online", tags=["Presence"])


@router.get("", response_model=OnlineListPayload, response_model_by_alias=True)
async def get_online_users(request: Request, principal: Principal = CurrentPrincipal):
    """현재 온라인인 사용자 ID 목록"""
    return OnlineListPayload(user_ids=request.app.state.presence.list_all())
