from datetime import datetime
from typing import Dict, List, Optional
import logging

from app.core.config import Settings, settings as default_settings
from app.domains.artifacts.console import ConsoleAggregator
from app.domains.artifacts.coordinator import SyncCoordinator
from app.domains.artifacts.entities import Suggestion, Version
from app.domains.artifacts.reducer import ContentPolicy
from app.domains.artifacts.suggestions import SuggestionOverlay
from app.domains.artifacts.versions import RestorePolicy, VersionPersistence, VersionStore
from app.domains.artifacts.visibility import VisibilityGate

logger = logging.getLogger(__name__)


def build_version_store(repository: VersionPersistence, config: Settings = default_settings) -> VersionStore:
    """Создание хранилища версий с политикой восстановления из настроек"""
    return VersionStore(repository, policy=RestorePolicy(config.restore_policy))


class ArtifactSession:
    """Состояние артефакта одного чата: координатор потока и консоль"""

    def __init__(self, chat_id: str, coordinator: SyncCoordinator, console: ConsoleAggregator):
        self.chat_id = chat_id
        self.coordinator = coordinator
        self.console = console

    def __repr__(self) -> str:
        return f"ArtifactSession(chat={self.chat_id}, {self.coordinator!r}, {self.console!r})"


class ArtifactSessionManager:
    """Реестр сессий артефактов по идентификатору чата"""

    def __init__(self, store: VersionStore, config: Settings = default_settings):
        self.store = store
        self.config = config
        self._sessions: Dict[str, ArtifactSession] = {}

    @property
    def active_sessions(self) -> List[str]:
        return list(self._sessions.keys())

    def get(self, chat_id: str) -> Optional[ArtifactSession]:
        return self._sessions.get(chat_id)

    def get_or_create(self, chat_id: str, author_id: Optional[str] = None) -> ArtifactSession:
        """Получение сессии чата или создание новой"""
        session = self._sessions.get(chat_id)
        if session is not None and not session.coordinator.is_cancelled:
            return session

        coordinator = SyncCoordinator(
            session_id=chat_id,
            store=self.store,
            gate=VisibilityGate(self.config.visibility_threshold),
            policy=ContentPolicy(self.config.content_policy),
            author_id=author_id,
            overlay=SuggestionOverlay(),
        )
        session = ArtifactSession(chat_id, coordinator, ConsoleAggregator())
        self._sessions[chat_id] = session
        logger.info(f"Created artifact session for chat {chat_id}")
        return session

    def coordinators_for(self, document_id: str) -> List[SyncCoordinator]:
        """Координаторы сессий, в которых открыт документ"""
        coordinators = []
        for session in self._sessions.values():
            draft = session.coordinator.draft
            if draft is not None and draft.document_id == document_id:
                coordinators.append(session.coordinator)
        return coordinators

    async def restore(
        self,
        document_id: str,
        created_at: datetime,
        author_id: Optional[str] = None
    ) -> Version:
        """Восстановление версии и сброс черновиков всех сессий документа"""
        coordinators = self.coordinators_for(document_id)
        for coordinator in coordinators:
            coordinator.ensure_idle("restore a version")

        version = await self.store.restore(document_id, created_at, author_id)
        await self.publish_version(version, coordinators)
        return version

    async def publish_version(
        self,
        version: Version,
        coordinators: Optional[List[SyncCoordinator]] = None
    ) -> int:
        """Сброс открытых черновиков к версии, сохраненной вне сессий"""
        if coordinators is None:
            coordinators = self.coordinators_for(version.document_id)

        reset = 0
        for coordinator in coordinators:
            if await coordinator.reset_to(version):
                reset += 1
            else:
                logger.warning(
                    f"Session {coordinator.session_id} kept its draft of {version.document_id}, "
                    f"version {version.created_at.isoformat()} not applied"
                )
        return reset

    def attach_suggestions(self, document_id: str, suggestions: List[Suggestion]) -> int:
        """Передача предложений в слой подсказок сессий, где открыт документ"""
        attached = 0
        for session in self._sessions.values():
            coordinator = session.coordinator
            draft = coordinator.draft
            if coordinator.overlay is None or draft is None or draft.document_id != document_id:
                continue
            coordinator.overlay.set_suggestions(suggestions)
            coordinator.overlay.anchor(draft.content)
            attached += 1
        return attached

    async def close(self, chat_id: str) -> bool:
        """Закрытие сессии: несохраненный черновик отбрасывается"""
        session = self._sessions.pop(chat_id, None)
        if session is None:
            return False

        await session.coordinator.cancel()
        logger.info(f"Closed artifact session for chat {chat_id}")
        return True

    async def close_all(self) -> None:
        for chat_id in list(self._sessions.keys()):
            await self.close(chat_id)
