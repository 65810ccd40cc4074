import difflib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol

from app.core.errors import ConflictError, NotFoundError
from app.domains.artifacts.entities import ArtifactKind, Version, as_utc, utcnow

logger = logging.getLogger(__name__)

TICK = timedelta(microseconds=1)


class RestorePolicy(str, Enum):
    """Что происходит с более новыми версиями при восстановлении"""
    APPEND = "append"
    DELETE_NEWER = "delete_newer"


class ViewMode(str, Enum):
    EDIT = "edit"
    DIFF = "diff"


class VersionPersistence(Protocol):
    async def save_version(
        self,
        document_id: str,
        created_at: datetime,
        title: str,
        kind: ArtifactKind,
        content: str,
        author_id: Optional[str] = None,
    ) -> Version: ...

    async def get_version(self, document_id: str, created_at: datetime) -> Optional[Version]: ...

    async def list_versions(self, document_id: str) -> List[Version]: ...

    async def delete_versions_after(self, document_id: str, created_at: datetime) -> int: ...


class MonotonicClock:
    """Источник времени, строго возрастающий в пределах одного документа"""

    def __init__(self, now: Callable[[], datetime] = utcnow):
        self._now = now
        self._last: Dict[str, datetime] = {}

    def observe(self, document_id: str, created_at: datetime) -> None:
        created_at = as_utc(created_at)
        last = self._last.get(document_id)
        if last is None or created_at > last:
            self._last[document_id] = created_at

    def next(self, document_id: str) -> datetime:
        current = as_utc(self._now())
        last = self._last.get(document_id)
        if last is not None and current <= last:
            current = last + TICK
        self._last[document_id] = current
        return current


@dataclass
class NavigationState:
    """Позиция просматриваемой версии; None означает последнюю"""
    index: Optional[int] = None
    mode: ViewMode = ViewMode.EDIT


class VersionStore:
    """Упорядоченная история неизменяемых версий документа"""

    def __init__(
        self,
        repository: VersionPersistence,
        policy: RestorePolicy = RestorePolicy.APPEND,
        clock: Optional[MonotonicClock] = None,
    ):
        self.repository = repository
        self.policy = RestorePolicy(policy)
        self.clock = clock or MonotonicClock()
        self._navigation: Dict[str, NavigationState] = {}

    async def next_timestamp(self, document_id: str) -> datetime:
        """Время для новой версии, строго позже всех сохраненных"""
        await self.list(document_id)
        return self.clock.next(document_id)

    async def append(self, version: Version) -> Version:
        """Добавление новой версии; повтор (document_id, created_at) запрещен"""
        existing = await self.repository.get_version(version.document_id, version.created_at)
        if existing is not None:
            raise ConflictError(
                f"Version ({version.document_id}, {as_utc(version.created_at).isoformat()}) already exists"
            )

        saved = await self.repository.save_version(
            document_id=version.document_id,
            created_at=version.created_at,
            title=version.title,
            kind=version.kind,
            content=version.content,
            author_id=version.author_id,
        )
        self.clock.observe(saved.document_id, saved.created_at)
        # Новая версия всегда показывается как последняя
        self._navigation.pop(saved.document_id, None)

        logger.info(f"Created version {saved.created_at.isoformat()} of document {saved.document_id}")
        return saved

    async def list(self, document_id: str) -> List[Version]:
        """Версии документа по возрастанию created_at"""
        versions = await self.repository.list_versions(document_id)
        versions = sorted(versions, key=lambda v: as_utc(v.created_at))
        if versions:
            self.clock.observe(document_id, versions[-1].created_at)
        return versions

    async def iter_versions(self, document_id: str) -> AsyncIterator[Version]:
        """Ленивый обход истории; каждый вызов начинает обход заново"""
        for version in await self.list(document_id):
            yield version

    async def get(self, document_id: str, created_at: datetime) -> Version:
        version = await self.repository.get_version(document_id, created_at)
        if version is None:
            raise NotFoundError(
                f"Version {as_utc(created_at).isoformat()} of document {document_id} not found"
            )
        return version

    async def latest(self, document_id: str) -> Optional[Version]:
        versions = await self.list(document_id)
        return versions[-1] if versions else None

    async def restore(
        self,
        document_id: str,
        target_created_at: datetime,
        author_id: Optional[str] = None,
    ) -> Version:
        """Восстановление версии как последней.

        При политике APPEND создается новая версия с содержимым целевой и
        текущим временем, история не теряется. При DELETE_NEWER удаляются все
        версии новее целевой, и целевая становится последней.
        """
        target = await self.get(document_id, target_created_at)

        if self.policy == RestorePolicy.DELETE_NEWER:
            removed = await self.repository.delete_versions_after(document_id, target.created_at)
            self._navigation.pop(document_id, None)
            logger.info(
                f"Restored document {document_id} to {target.created_at.isoformat()}, "
                f"deleted {removed} newer versions"
            )
            return target

        restored = Version(
            document_id=document_id,
            created_at=await self.next_timestamp(document_id),
            title=target.title,
            kind=target.kind,
            content=target.content,
            author_id=author_id if author_id is not None else target.author_id,
        )
        saved = await self.append(restored)
        logger.info(
            f"Restored document {document_id} from {target.created_at.isoformat()} "
            f"as {saved.created_at.isoformat()}"
        )
        return saved

    async def current_index(self, document_id: str) -> int:
        """Индекс просматриваемой версии, по умолчанию последний"""
        total = len(await self.list(document_id))
        state = self._navigation.get(document_id)
        if state is None or state.index is None:
            return total - 1
        return min(state.index, total - 1)

    async def is_current_version(self, document_id: str) -> bool:
        total = len(await self.list(document_id))
        return await self.current_index(document_id) == total - 1

    def mode(self, document_id: str) -> ViewMode:
        state = self._navigation.get(document_id)
        return state.mode if state else ViewMode.EDIT

    async def change_version(self, document_id: str, direction: str) -> int:
        """Навигация по истории: prev, next, latest, toggle"""
        total = len(await self.list(document_id))
        state = self._navigation.setdefault(document_id, NavigationState())
        index = state.index if state.index is not None else total - 1

        if direction == "latest":
            state.index = None
            state.mode = ViewMode.EDIT
        elif direction == "toggle":
            state.mode = ViewMode.DIFF if state.mode == ViewMode.EDIT else ViewMode.EDIT
        elif direction == "prev":
            if index > 0:
                state.index = index - 1
        elif direction == "next":
            if index < total - 1:
                state.index = index + 1
        else:
            raise ValueError(f"Unknown navigation direction: {direction}")

        return await self.current_index(document_id)

    async def timestamp_at(self, document_id: str, index: int) -> datetime:
        """created_at версии по ее индексу в истории"""
        versions = await self.list(document_id)
        if index < 0 or index >= len(versions):
            raise NotFoundError(f"Document {document_id} has no version at index {index}")
        return versions[index].created_at

    async def diff(self, document_id: str, from_index: int, to_index: int) -> str:
        """Unified diff между двумя версиями"""
        versions = await self.list(document_id)
        for index in (from_index, to_index):
            if index < 0 or index >= len(versions):
                raise NotFoundError(f"Document {document_id} has no version at index {index}")

        old, new = versions[from_index], versions[to_index]
        return "".join(
            difflib.unified_diff(
                old.content.splitlines(keepends=True),
                new.content.splitlines(keepends=True),
                fromfile=old.created_at.isoformat(),
                tofile=new.created_at.isoformat(),
            )
        )
