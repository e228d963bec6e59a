from datetime import datetime, timezone
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from database import Settings, get_settings
from core.context import build_context
from api import admin, matches, websocket

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """依設定的 log_level 設定 root logger（uvicorn main:app 與直接執行都適用）"""
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    # root 已有 handler 時 basicConfig 不會動 level
    logging.getLogger().setLevel(settings.log_level)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立 StateStore / EventHub / LifecycleEngine
        app.state.context = build_context(settings)
        logger.info(
            f"Match tracker ready (duration={settings.match_duration_seconds}s, "
            f"interval={settings.event_interval_min_seconds}-{settings.event_interval_max_seconds}s)"
        )
        yield
        # Shutdown: 取消所有計時器並關閉所有串流
        await app.state.context.shutdown()

    app = FastAPI(
        title="Football Match Tracker API",
        description="Live match simulation with real-time event streaming",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(admin.router)
    app.include_router(matches.router)
    app.include_router(websocket.router)

    @app.get("/")
    def root():
        return {"message": "Football Match Tracker API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
