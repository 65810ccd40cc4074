from typing import Optional, List
from datetime import datetime
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.errors import ConflictError, PersistenceError
from app.db.models.artifact import DocumentVersion as DocumentVersionModel
from app.domains.artifacts.entities import ArtifactKind, Version, as_utc

logger = logging.getLogger(__name__)


class VersionRepository:
    """Репозиторий для работы с версиями документов"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save_version(
        self,
        document_id: str,
        created_at: datetime,
        title: str,
        kind: ArtifactKind,
        content: str,
        author_id: Optional[str] = None
    ) -> Version:
        """Создание новой версии документа"""
        db_version = DocumentVersionModel(
            document_id=document_id,
            created_at=as_utc(created_at),
            title=title,
            kind=ArtifactKind(kind).value,
            content=content,
            author_id=author_id
        )

        self.session.add(db_version)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"Version ({document_id}, {created_at.isoformat()}) already exists"
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to save version of document {document_id}: {e}")
            raise PersistenceError(f"Failed to save version of document {document_id}") from e

        return self._to_domain(db_version)

    async def get_version(self, document_id: str, created_at: datetime) -> Optional[Version]:
        """Получение версии по идентификатору документа и времени создания"""
        try:
            result = await self.session.execute(
                select(DocumentVersionModel).where(
                    and_(
                        DocumentVersionModel.document_id == document_id,
                        DocumentVersionModel.created_at == as_utc(created_at)
                    )
                )
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load version of document {document_id}") from e
        db_version = result.scalar_one_or_none()
        return self._to_domain(db_version) if db_version else None

    async def list_versions(self, document_id: str) -> List[Version]:
        """Получение версий документа по возрастанию времени создания"""
        try:
            result = await self.session.execute(
                select(DocumentVersionModel)
                .where(DocumentVersionModel.document_id == document_id)
                .order_by(DocumentVersionModel.created_at.asc())
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list versions of document {document_id}") from e
        db_versions = result.scalars().all()
        return [self._to_domain(version) for version in db_versions]

    async def delete_versions_after(self, document_id: str, created_at: datetime) -> int:
        """Удаление версий, созданных позже указанного момента"""
        stmt = delete(DocumentVersionModel).where(
            and_(
                DocumentVersionModel.document_id == document_id,
                DocumentVersionModel.created_at > as_utc(created_at)
            )
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to delete versions of document {document_id}: {e}")
            raise PersistenceError(f"Failed to delete versions of document {document_id}") from e
        return result.rowcount

    def _to_domain(self, db_version: DocumentVersionModel) -> Version:
        """Преобразование модели БД в доменную сущность"""
        return Version(
            document_id=db_version.document_id,
            created_at=as_utc(db_version.created_at),
            title=db_version.title,
            kind=ArtifactKind(db_version.kind),
            content=db_version.content,
            author_id=db_version.author_id
        )
