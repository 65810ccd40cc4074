from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from app.api.http import chats_router, documents_router, health_router
from app.api.ws.sync import router as websocket_router
from app.core.config import Settings, settings
from app.core.db import engine as default_engine, init_models, make_session_factory
from app.domains.artifacts.services import ArtifactSessionManager, build_version_store
from app.infrastructure.repositories.version_repository import SessionScopedVersionRepository

logger = logging.getLogger(__name__)


def configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def create_app(
    config: Settings = settings,
    engine: Optional[AsyncEngine] = None,
    create_tables: bool = True
) -> FastAPI:
    """Сборка приложения с реестром сессий артефактов"""
    configure_logging(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bind = engine or default_engine
        if create_tables:
            await init_models(bind)

        app.state.session_factory = make_session_factory(bind)
        repository = SessionScopedVersionRepository(app.state.session_factory)
        app.state.sessions = ArtifactSessionManager(build_version_store(repository, config), config)
        logger.info(
            f"Artifact sync started: restore_policy={config.restore_policy}, "
            f"content_policy={config.content_policy}, visibility_threshold={config.visibility_threshold}"
        )
        yield
        await app.state.sessions.close_all()

    app = FastAPI(
        title="Artifact Sync",
        description="Синхронизация потоковых артефактов: черновики, версии, консоль",
        version="1.0.0",
        lifespan=lifespan
    )

    # Настройка CORS для работы с frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # В продакшене указать конкретные домены
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Подключаем роутеры
    app.include_router(health_router)
    app.include_router(documents_router)
    app.include_router(chats_router)
    app.include_router(websocket_router)

    return app


app = create_app()
