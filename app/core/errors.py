from typing import Optional, Dict, Any
from fastapi import HTTPException, status


# =============================================================================
# WebSocket 게이트웨이 예외
# =============================================================================

# 클라이언트에 전달되는 안정적인 에러 코드
MESSAGE_CREATE = "MESSAGE_CREATE"
READ_RECEIPT = "READ_RECEIPT"
INVALID_PAYLOAD = "INVALID_PAYLOAD"


class GatewayError(Exception):
    """게이트웨이 이벤트 처리 중 발생한 에러

    요청을 보낸 연결에만 ``error`` 이벤트로 전달되며 채팅방에는 브로드캐스트되지 않습니다.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    def to_event(self) -> Dict[str, Any]:
        return {"type": "error", "code": self.code, "message": self.message}


class StoreFailure(GatewayError):
    """저장소(DB) 조회/변경 실패"""


class MessageNotFound(StoreFailure):
    def __init__(self, code: str, message_id: str):
        super().__init__(code, f"Message {message_id} not found")


# =============================================================================
# HTTP 예외
# =============================================================================

class BaseCustomException(HTTPException):
    """기본 커스텀 예외 클래스"""
    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(status_code=status_code, detail=self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class AuthenticationException(BaseCustomException):
    """인증 실패 예외"""
    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="authentication_error",
            message=message,
            details=details
        )


class ResourceNotFoundException(BaseCustomException):
    """리소스를 찾을 수 없음 예외"""
    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if message is None:
            message = f"{resource} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="resource_not_found",
            message=message,
            details=details or {"resource": resource}
        )
