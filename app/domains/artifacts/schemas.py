from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from app.domains.artifacts.console import ConsoleStatus
from app.domains.artifacts.entities import ArtifactKind, DraftStatus


class DraftResponse(BaseModel):
    """Схема снимка черновика"""
    document_id: str
    title: str
    kind: ArtifactKind
    content: str
    status: DraftStatus
    is_visible: bool

    model_config = ConfigDict(from_attributes=True)


class VersionResponse(BaseModel):
    """Схема для ответа с данными версии документа"""
    document_id: str
    created_at: datetime
    title: str
    kind: ArtifactKind
    content: str
    author_id: Optional[str] = None
    word_count: int
    content_length: int


class VersionListResponse(BaseModel):
    """Схема для списка версий"""
    versions: List[VersionResponse]
    current_index: int
    total: int


class DraftUpdate(BaseModel):
    """Схема правки черновика пользователем"""
    content: str = Field(..., max_length=1000000)


class VersionCreate(BaseModel):
    """Схема для явного сохранения версии"""
    title: str = Field(default="", max_length=255)
    kind: ArtifactKind = ArtifactKind.TEXT
    content: str = Field(default="", max_length=1000000)
    author_id: Optional[str] = None


class RestoreRequest(BaseModel):
    """Схема для восстановления версии"""
    timestamp: datetime
    author_id: Optional[str] = None


class VersionDiffResponse(BaseModel):
    """Схема для ответа с разницей между версиями"""
    document_id: str
    from_index: int
    to_index: int
    diff: str


class SuggestionCreate(BaseModel):
    """Схема для создания предложения правки"""
    document_created_at: datetime
    original_text: str = Field(..., min_length=1)
    suggested_text: str
    description: str = ""
    author_id: Optional[str] = None


class SuggestionResponse(BaseModel):
    """Схема для ответа с предложением"""
    id: str
    document_id: str
    document_created_at: datetime
    original_text: str
    suggested_text: str
    description: str
    is_resolved: bool
    author_id: Optional[str] = None
    created_at: datetime


class ConsoleOutputPayload(BaseModel):
    """Схема результата выполнения от исполнителя инструментов"""
    id: str = Field(..., min_length=1)
    status: ConsoleStatus = ConsoleStatus.IN_PROGRESS
    content: Union[str, Dict[str, Any]] = ""

    @field_validator("content")
    @classmethod
    def validate_content(cls, v, info):
        values = info.data if hasattr(info, "data") else {}
        if values.get("status") == ConsoleStatus.FAILED and isinstance(v, dict) and "message" not in v:
            raise ValueError("Failed output payload must have a message")
        return v


class ConsoleResponse(BaseModel):
    """Схема состояния консоли"""
    outputs: List[ConsoleOutputPayload]
    revision: int


class ErrorResponse(BaseModel):
    """Схема структурированной ошибки"""
    kind: str
    message: str
