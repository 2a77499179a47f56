from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api import include_routers
from app.core.config import settings
from app.core.errors import BaseCustomException
from app.core.logging import setup_logging
from app.database import AsyncSessionLocal, init_databases, close_databases
from app.middleware.error_handler import ErrorHandlerMiddleware, custom_exception_handler
from app.websockets import (
    PresenceTracker,
    ConnectionManager,
    SessionVerifier,
    WebSocketEventHandler,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    await init_databases()
    yield
    # Shutdown
    await close_databases()


def create_app(
    session_factory: Optional[async_sessionmaker] = None,
    session_verifier: Optional[SessionVerifier] = None,
    use_lifespan: bool = True,
    enable_metrics: bool = True
) -> FastAPI:
    """
    애플리케이션 생성

    접속 상태 추적기와 연결 매니저는 앱 인스턴스마다 하나씩 만들어 ``app.state``에 둡니다.
    테스트에서는 세션 팩토리/검증기를 주입하고 lifespan과 메트릭을 끌 수 있습니다.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan if use_lifespan else None
    )

    session_factory = session_factory or AsyncSessionLocal
    presence = PresenceTracker()
    connection_manager = ConnectionManager(presence)

    app.state.session_factory = session_factory
    app.state.session_verifier = session_verifier or SessionVerifier(session_factory)
    app.state.presence = presence
    app.state.connection_manager = connection_manager
    app.state.event_handler = WebSocketEventHandler(connection_manager, session_factory)

    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BaseCustomException, custom_exception_handler)

    # Include routers
    include_routers(app, "api", [str(Path(__file__).parent / "api")])

    # Prometheus metrics (프로세스 전역 레지스트리를 쓰므로 앱당 한 번만)
    if enable_metrics:
        Instrumentator().instrument(app).expose(app)

    @app.get("/")
    async def root():
        return {
            "service": settings.app_name,
            "version": settings.version,
            "status": "running"
        }

    return app


app = create_app()
