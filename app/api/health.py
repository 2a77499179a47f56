from datetime import datetime

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.database import check_database_health

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check(request: Request):
    """DB 연결 상태와 게이트웨이 접속 현황"""
    state = request.app.state
    db_health = await check_database_health(state.session_factory)

    return JSONResponse(
        status_code=status.HTTP_200_OK if db_health["overall"] else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if db_health["overall"] else "unhealthy",
            "timestamp": datetime.utcnow().isoformat(),
            "service": settings.app_name,
            "version": settings.version,
            "databases": {
                "mysql": "connected" if db_health["mysql"] else "disconnected",
            },
            "gateway": {
                "online_users": len(state.presence.list_all()),
                "connections": len(state.connection_manager.connections),
            },
        }
    )


@router.get("/ready")
async def readiness_check(request: Request):
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health(request.app.state.session_factory)
    if not db_health["overall"]:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "database unavailable"}
        )
    return {"status": "ready"}


@router.get("/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}
