from fastapi import APIRouter, Depends

from app.api.deps import get_manager
from app.domains.artifacts.services import ArtifactSessionManager

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(manager: ArtifactSessionManager = Depends(get_manager)):
    """Проверка состояния сервиса"""
    return {"status": "ok", "active_sessions": len(manager.active_sessions)}
