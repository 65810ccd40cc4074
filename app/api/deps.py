from fastapi import Request

from app.domains.artifacts.services import ArtifactSessionManager
from app.domains.artifacts.versions import VersionStore


def get_manager(request: Request) -> ArtifactSessionManager:
    return request.app.state.sessions


def get_store(request: Request) -> VersionStore:
    return request.app.state.sessions.store


# Функция для dependency injection в FastAPI
async def get_db(request: Request):
    async with request.app.state.session_factory() as session:
        yield session
