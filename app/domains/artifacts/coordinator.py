import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from app.core.errors import ConflictError, MalformedDeltaError, NotFoundError, PersistenceError, SyncError
from app.domains.artifacts.deltas import Delta, DeltaType, parse_delta
from app.domains.artifacts.entities import Draft, DraftStatus, Version
from app.domains.artifacts.reducer import ContentPolicy, delta_matches_kind, reduce
from app.domains.artifacts.suggestions import SuggestionOverlay
from app.domains.artifacts.versions import VersionStore
from app.domains.artifacts.visibility import VisibilityGate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncFailure:
    """Ошибка, возвращаемая вызывающему слою вместо исключения"""

    kind: str
    message: str
    position: Optional[int] = None

    @classmethod
    def from_error(cls, error: SyncError, position: Optional[int] = None) -> "SyncFailure":
        return cls(kind=error.kind, message=error.message, position=position)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "position": self.position}


DraftObserver = Callable[[Draft], Union[None, Awaitable[None]]]
FailureObserver = Callable[[SyncFailure], Union[None, Awaitable[None]]]


class SyncCoordinator:
    """Владелец живого черновика одной сессии документа.

    Дельты применяются строго по очереди одним воркером. Наблюдатели
    получают копии черновика после каждой дельты. На finish черновик
    сохраняется новой версией в VersionStore.
    """

    def __init__(
        self,
        session_id: str,
        store: VersionStore,
        gate: Optional[VisibilityGate] = None,
        policy: ContentPolicy = ContentPolicy.REPLACE,
        author_id: Optional[str] = None,
        overlay: Optional[SuggestionOverlay] = None,
    ):
        self.session_id = session_id
        self.store = store
        self.gate = gate or VisibilityGate()
        self.policy = ContentPolicy(policy)
        self.author_id = author_id
        self.overlay = overlay

        self.last_message_id: Optional[str] = None
        self.failures: List[SyncFailure] = []

        self._draft: Optional[Draft] = None
        self._queue: "asyncio.Queue[Tuple[int, Any]]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._next_position = 0
        self._processed = 0
        self._last_persisted: Optional[Version] = None
        self._cancelled = False
        self._observers: List[DraftObserver] = []
        self._failure_observers: List[FailureObserver] = []
        # Единственный писатель черновика: воркер или действие пользователя
        self._lock = asyncio.Lock()

    @property
    def draft(self) -> Optional[Draft]:
        """Снимок текущего черновика"""
        return self._draft.copy() if self._draft is not None else None

    @property
    def processed_count(self) -> int:
        return self._processed

    @property
    def received_count(self) -> int:
        return self._next_position

    @property
    def last_persisted(self) -> Optional[Version]:
        return self._last_persisted

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def subscribe(self, observer: DraftObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: DraftObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def on_failure(self, observer: FailureObserver) -> None:
        self._failure_observers.append(observer)

    def remove_failure_observer(self, observer: FailureObserver) -> None:
        if observer in self._failure_observers:
            self._failure_observers.remove(observer)

    def submit(self, record: Union[Delta, Any], position: Optional[int] = None) -> bool:
        """Постановка дельты в очередь.

        Повторная доставка уже принятой позиции ничего не делает.
        Возвращает True, если дельта принята.
        """
        if self._cancelled:
            logger.warning(f"Session {self.session_id} is cancelled, delta dropped")
            return False

        if position is None:
            position = self._next_position

        if position < self._next_position:
            logger.debug(f"Session {self.session_id}: delta at position {position} already received")
            return False

        if position > self._next_position:
            logger.warning(
                f"Session {self.session_id}: gap in delta stream, "
                f"expected position {self._next_position}, got {position}"
            )

        self._queue.put_nowait((position, record))
        self._next_position = position + 1
        self._ensure_worker()
        return True

    def ingest(self, records: Sequence[Any]) -> int:
        """Прием всего накопленного массива дельт; обрабатываются только новые"""
        accepted = 0
        for position in range(self._next_position, len(records)):
            if self.submit(records[position], position):
                accepted += 1
        return accepted

    async def drain(self) -> None:
        """Ожидание применения всех принятых дельт"""
        await self._queue.join()

    async def cancel(self) -> None:
        """Отмена сессии: черновик отбрасывается без сохранения"""
        self._cancelled = True

        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

        if self._draft is not None and self._draft.is_streaming:
            logger.info(f"Session {self.session_id} cancelled, unsaved draft of {self._draft.document_id or '<new>'} discarded")
        self._draft = None

    async def load(self, document_id: str) -> Draft:
        """Открытие документа по последней сохраненной версии"""
        async with self._lock:
            self.ensure_idle("load a document")
            latest = await self.store.latest(document_id)
            if latest is None:
                raise NotFoundError(f"Document {document_id} has no versions")

            self.ensure_idle("load a document")
            self.gate.reset()
            self._set_version(latest, is_visible=True)
            await self._publish()
            return self.draft

    async def update_content(self, content: str) -> Draft:
        """Правка содержимого пользователем вне потока"""
        async with self._lock:
            self.ensure_idle("edit the document")
            if self._draft is None:
                raise NotFoundError(f"Session {self.session_id} has no draft")

            self._draft = self._draft.copy(content=content)
            await self._publish()
            return self.draft

    async def save(self, author_id: Optional[str] = None) -> Version:
        """Явная точка сохранения текущего черновика"""
        async with self._lock:
            self.ensure_idle("save the document")
            if self._draft is None or not self._draft.document_id:
                raise NotFoundError(f"Session {self.session_id} has no document to save")

            draft = self._draft.copy()
            latest = await self.store.latest(draft.document_id)
            if (
                latest is not None
                and latest.content == draft.content
                and latest.title == draft.title
                and latest.kind == draft.kind
            ):
                return latest

            created_at = await self.store.next_timestamp(draft.document_id)
            version = await self.store.append(
                Version.from_draft(draft, created_at, author_id if author_id is not None else self.author_id)
            )
            self._last_persisted = version
            return version

    async def restore(self, created_at, document_id: Optional[str] = None, author_id: Optional[str] = None) -> Version:
        """Восстановление версии и сброс черновика к ее содержимому"""
        async with self._lock:
            self.ensure_idle("restore a version")
            document_id = document_id or (self._draft.document_id if self._draft else "")
            if not document_id:
                raise NotFoundError(f"Session {self.session_id} has no document to restore")

            version = await self.store.restore(
                document_id, created_at, author_id if author_id is not None else self.author_id
            )

            self.ensure_idle("restore a version")
            self._set_version(version)
            await self._publish()
            return version

    async def reset_to(self, version: Version) -> bool:
        """Сброс черновика к версии, сохраненной вне этой сессии.

        Черновик в потоке или отмененная сессия не трогаются. Возвращает
        True, если черновик сброшен.
        """
        async with self._lock:
            if self._cancelled or self._draft is None or self._draft.is_streaming:
                return False
            if self._draft.document_id != version.document_id:
                return False

            self._set_version(version)
            await self._publish()
            return True

    def _set_version(self, version: Version, is_visible: Optional[bool] = None) -> None:
        if is_visible is None:
            is_visible = self._draft.is_visible if self._draft is not None else True
        self._draft = Draft(
            document_id=version.document_id,
            title=version.title,
            kind=version.kind,
            content=version.content,
            status=DraftStatus.IDLE,
            is_visible=is_visible,
        )
        self._last_persisted = version

    def ensure_idle(self, action: str) -> None:
        """ConflictError, если сессия в потоке или отменена"""
        if self._cancelled:
            raise ConflictError(f"Session {self.session_id} is cancelled")
        if self._draft is not None and self._draft.is_streaming:
            raise ConflictError(f"Cannot {action} while the document is streaming")

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            position, record = await self._queue.get()
            try:
                async with self._lock:
                    await self._apply(position, record)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Session {self.session_id}: unexpected error at position {position}")
                await self._fail(SyncError(str(e)), position)
            finally:
                self._queue.task_done()

    async def _apply(self, position: int, record: Any) -> None:
        try:
            delta = parse_delta(record)
        except MalformedDeltaError as e:
            logger.warning(f"Session {self.session_id}: dropped delta at position {position}: {e.message}")
            self._processed += 1
            await self._fail(e, position)
            return

        self._processed += 1

        if delta.type == DeltaType.USER_MESSAGE_ID:
            self.last_message_id = delta.content
            return

        if (
            delta.type == DeltaType.ID
            and self._draft is not None
            and self._draft.document_id
            and self._draft.document_id != delta.content
        ):
            # Новый документ в той же сессии
            self.gate.reset()

        if self._draft is not None and not delta_matches_kind(self._draft, delta):
            logger.warning(
                f"Session {self.session_id}: {delta.type.value} applied to a "
                f"{self._draft.kind.value} artifact"
            )

        self.gate.observe(delta)
        self._draft = self.gate.gate(reduce(self._draft, delta, self.policy))
        await self._publish()

        if delta.is_terminal:
            await self._persist(position)

    async def _persist(self, position: int) -> None:
        draft = self._draft.copy()
        if not draft.document_id:
            await self._fail(
                PersistenceError("Stream finished without a document id, draft was not saved"),
                position,
            )
            return

        try:
            created_at = await self.store.next_timestamp(draft.document_id)
            version = await self.store.append(Version.from_draft(draft, created_at, self.author_id))
        except ConflictError as e:
            logger.warning(f"Session {self.session_id}: {e.message}, keeping existing version")
            await self._fail(e, position)
        except PersistenceError as e:
            logger.error(f"Session {self.session_id}: failed to persist draft of {draft.document_id}: {e.message}")
            await self._fail(e, position)
        else:
            self._last_persisted = version

    async def _publish(self) -> None:
        if self._draft is None:
            return

        if self.overlay is not None:
            self.overlay.anchor(self._draft.content)

        for observer in list(self._observers):
            try:
                result = observer(self._draft.copy())
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Session {self.session_id}: draft observer failed: {e}")

    async def _fail(self, error: SyncError, position: Optional[int] = None) -> None:
        failure = SyncFailure.from_error(error, position)
        self.failures.append(failure)

        for observer in list(self._failure_observers):
            try:
                result = observer(failure)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Session {self.session_id}: failure observer failed: {e}")

    def __repr__(self) -> str:
        return (
            f"SyncCoordinator(session={self.session_id}, processed={self._processed}, "
            f"status={self._draft.status.value if self._draft else None})"
        )
