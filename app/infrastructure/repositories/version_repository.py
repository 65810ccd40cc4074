from typing import Optional, List
from datetime import datetime

from app.core.db import SessionLocal
from app.db.repositories.version_repository import VersionRepository
from app.domains.artifacts.entities import ArtifactKind, Version
from app.infrastructure.database.session import SessionFactory, get_session


class SessionScopedVersionRepository:
    """Хранилище версий для долгоживущих сессий: отдельная сессия БД на каждый вызов"""

    def __init__(self, session_factory: SessionFactory = SessionLocal):
        self.session_factory = session_factory

    async def save_version(
        self,
        document_id: str,
        created_at: datetime,
        title: str,
        kind: ArtifactKind,
        content: str,
        author_id: Optional[str] = None
    ) -> Version:
        async with get_session(self.session_factory) as session:
            return await VersionRepository(session).save_version(
                document_id, created_at, title, kind, content, author_id
            )

    async def get_version(self, document_id: str, created_at: datetime) -> Optional[Version]:
        async with get_session(self.session_factory) as session:
            return await VersionRepository(session).get_version(document_id, created_at)

    async def list_versions(self, document_id: str) -> List[Version]:
        async with get_session(self.session_factory) as session:
            return await VersionRepository(session).list_versions(document_id)

    async def delete_versions_after(self, document_id: str, created_at: datetime) -> int:
        async with get_session(self.session_factory) as session:
            return await VersionRepository(session).delete_versions_after(document_id, created_at)
