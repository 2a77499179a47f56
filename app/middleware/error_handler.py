from typing import Any, Callable, Dict, Optional
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import OperationalError, DatabaseError

from app.core.config import settings
from app.core.errors import BaseCustomException
from app.core.logging import get_logger

logger = get_logger(__name__)


def create_error_body(
    error: str,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """표준 에러 응답 본문"""
    return {
        "error": error,
        "message": message,
        "details": details,
        "status_code": status_code
    }


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    통합 에러 처리 미들웨어

    HTTP 요청에서 처리되지 않은 예외를 표준화된 에러 응답으로 변환합니다.
    WebSocket 연결은 이 미들웨어를 거치지 않습니다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except (OperationalError, DatabaseError) as e:
            # 데이터베이스 연결/작업 에러
            logger.error(f"Database error: {type(e).__name__}: {e}")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=create_error_body(
                    "database_error",
                    "Database connection or operation failed",
                    status.HTTP_503_SERVICE_UNAVAILABLE,
                    {"detail": str(e)} if settings.debug else None
                )
            )

        except Exception as e:
            # 예상하지 못한 모든 에러들
            logger.exception(f"Unhandled exception: {type(e).__name__}: {e}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=create_error_body(
                    "internal_server_error",
                    "An unexpected error occurred",
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    {"exception": str(e), "type": type(e).__name__} if settings.debug else None
                )
            )


async def custom_exception_handler(request: Request, exc: BaseCustomException):
    """커스텀 HTTP 예외를 표준 형식으로 변환"""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
