import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ArtifactKind(str, Enum):
    """Тип артефакта"""
    TEXT = "text"
    CODE = "code"


class DraftStatus(str, Enum):
    """Фаза жизненного цикла черновика"""
    IDLE = "idle"
    STREAMING = "streaming"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Приведение времени к aware UTC (SQLite возвращает naive datetime)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class Draft:
    """Живое состояние документа, собираемое из потока дельт"""

    document_id: str = ""
    title: str = ""
    kind: ArtifactKind = ArtifactKind.TEXT
    content: str = ""
    status: DraftStatus = DraftStatus.IDLE
    is_visible: bool = False

    def copy(self, **changes: Any) -> "Draft":
        """Снимок черновика по значению"""
        return replace(self, **changes)

    @property
    def is_streaming(self) -> bool:
        return self.status == DraftStatus.STREAMING

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация черновика в словарь"""
        return {
            "document_id": self.document_id,
            "title": self.title,
            "kind": self.kind.value,
            "content": self.content,
            "status": self.status.value,
            "is_visible": self.is_visible,
        }


@dataclass(frozen=True)
class Version:
    """Неизменяемый снимок документа"""

    document_id: str
    created_at: datetime
    title: str
    kind: ArtifactKind
    content: str
    author_id: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.document_id, as_utc(self.created_at))

    @classmethod
    def from_draft(cls, draft: Draft, created_at: datetime, author_id: Optional[str] = None) -> "Version":
        """Создание версии из текущего черновика"""
        return cls(
            document_id=draft.document_id,
            created_at=created_at,
            title=draft.title,
            kind=draft.kind,
            content=draft.content,
            author_id=author_id,
        )

    def get_word_count(self) -> int:
        if not self.content.strip():
            return 0
        return len(self.content.split())

    def __repr__(self) -> str:
        return f"Version(document_id={self.document_id}, created_at={self.created_at.isoformat()})"


@dataclass
class Suggestion:
    """Предложение правки, привязанное к фрагменту документа"""

    document_id: str
    document_created_at: datetime
    original_text: str
    suggested_text: str
    description: str = ""
    is_resolved: bool = False
    author_id: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "document_id": self.document_id,
            "document_created_at": self.document_created_at.isoformat(),
            "original_text": self.original_text,
            "suggested_text": self.suggested_text,
            "description": self.description,
            "is_resolved": self.is_resolved,
            "author_id": self.author_id,
            "created_at": self.created_at.isoformat(),
        }
