import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.core.errors import INVALID_PAYLOAD, GatewayError
from app.core.logging import set_connection_context, clear_connection_context
from app.websockets.auth import authenticate_websocket

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    실시간 채팅 WebSocket 엔드포인트

    핸드셰이크 쿼리 파라미터 ``token``으로 인증합니다. 인증된 연결은 ``join_room``으로
    채팅방을 구독한 뒤 메시지/타이핑/읽음 이벤트를 주고받습니다.
    """
    state = websocket.app.state

    # 1. 핸드셰이크 인증 (실패 시 accept 없이 종료)
    principal = await authenticate_websocket(websocket, state.session_verifier)
    if principal is None:
        return

    # 2. 연결 등록 (온라인 목록 전송, 첫 연결이면 user_online 브로드캐스트)
    await websocket.accept()
    connection = await state.connection_manager.register(websocket, principal)
    set_connection_context(connection.id, principal.user_id)

    try:
        # 3. 이벤트 수신 루프
        while True:
            raw = await websocket.receive_text()

            try:
                data = json.loads(raw)
            except ValueError as e:
                logger.warning(f"Invalid JSON from user {principal.user_id}: {e}")
                await state.connection_manager.send_json(
                    connection, GatewayError(INVALID_PAYLOAD, "Invalid JSON frame").to_event()
                )
                continue

            await state.event_handler.handle_event(connection, data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {principal.user_id}")

    except Exception as e:
        logger.exception(f"Unexpected error in WebSocket connection for user {principal.user_id}: {e}")

    finally:
        # 4. 연결 해제 처리 (마지막 연결이면 user_offline 브로드캐스트)
        await state.connection_manager.unregister(connection)
        clear_connection_context()
