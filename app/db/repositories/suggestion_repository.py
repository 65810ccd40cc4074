from typing import List
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import PersistenceError
from app.db.models.artifact import Suggestion as SuggestionModel
from app.domains.artifacts.entities import Suggestion, as_utc

logger = logging.getLogger(__name__)


class SuggestionRepository:
    """Репозиторий для работы с предложениями правок"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save_suggestions(self, suggestions: List[Suggestion]) -> List[Suggestion]:
        """Сохранение пакета предложений"""
        db_suggestions = [
            SuggestionModel(
                id=suggestion.id,
                document_id=suggestion.document_id,
                document_created_at=as_utc(suggestion.document_created_at),
                original_text=suggestion.original_text,
                suggested_text=suggestion.suggested_text,
                description=suggestion.description,
                is_resolved=suggestion.is_resolved,
                author_id=suggestion.author_id,
                created_at=as_utc(suggestion.created_at)
            )
            for suggestion in suggestions
        ]

        self.session.add_all(db_suggestions)
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to save {len(suggestions)} suggestions: {e}")
            raise PersistenceError("Failed to save suggestions") from e

        return [self._to_domain(db_suggestion) for db_suggestion in db_suggestions]

    async def list_by_document(self, document_id: str) -> List[Suggestion]:
        """Получение предложений документа"""
        try:
            result = await self.session.execute(
                select(SuggestionModel)
                .where(SuggestionModel.document_id == document_id)
                .order_by(SuggestionModel.created_at.asc())
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list suggestions of document {document_id}") from e
        return [self._to_domain(db_suggestion) for db_suggestion in result.scalars().all()]

    def _to_domain(self, db_suggestion: SuggestionModel) -> Suggestion:
        """Преобразование модели БД в доменную сущность"""
        return Suggestion(
            id=db_suggestion.id,
            document_id=db_suggestion.document_id,
            document_created_at=as_utc(db_suggestion.document_created_at),
            original_text=db_suggestion.original_text,
            suggested_text=db_suggestion.suggested_text,
            description=db_suggestion.description or "",
            is_resolved=db_suggestion.is_resolved,
            author_id=db_suggestion.author_id,
            created_at=as_utc(db_suggestion.created_at)
        )
