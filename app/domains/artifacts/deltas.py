from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator

from app.core.errors import MalformedDeltaError


class DeltaType(str, Enum):
    """Закрытый набор типов дельт потока генерации"""
    ID = "id"
    TITLE = "title"
    KIND = "kind"
    TEXT_DELTA = "text-delta"
    CODE_DELTA = "code-delta"
    CLEAR = "clear"
    FINISH = "finish"
    USER_MESSAGE_ID = "user-message-id"


# Дельты, для которых пустой content допустим
OPTIONAL_CONTENT = frozenset({DeltaType.CLEAR, DeltaType.FINISH})

CONTENT_DELTAS = frozenset({DeltaType.TEXT_DELTA, DeltaType.CODE_DELTA})


@dataclass(frozen=True)
class Delta:
    """Одна типизированная дельта"""

    type: DeltaType
    content: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.type == DeltaType.FINISH

    def to_dict(self) -> dict:
        return {"type": self.type.value, "content": self.content}


class DeltaRecord(BaseModel):
    """Схема записи дельты на проводе"""
    type: DeltaType
    content: Optional[str] = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v, info):
        values = info.data if hasattr(info, "data") else {}
        delta_type = values.get("type")
        if delta_type is None:
            return v
        if delta_type not in OPTIONAL_CONTENT and v is None:
            raise ValueError(f"'{delta_type.value}' delta must have content")
        if delta_type == DeltaType.ID and not v:
            raise ValueError("'id' delta must have a non-empty document id")
        if delta_type == DeltaType.KIND and v not in ("text", "code"):
            raise ValueError(f"Unknown artifact kind: {v!r}")
        return v

    def to_delta(self) -> Delta:
        return Delta(type=self.type, content=self.content or "")


def parse_delta(raw: Union[Delta, Mapping[str, Any]]) -> Delta:
    """Разбор записи дельты; неизвестные типы и неполные записи отклоняются"""
    if isinstance(raw, Delta):
        # Готовая дельта проходит ту же проверку, что и запись с провода
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        raise MalformedDeltaError(f"Delta must be a mapping, got {type(raw).__name__}")

    try:
        record = DeltaRecord.model_validate(dict(raw))
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'delta'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedDeltaError(f"Malformed delta {dict(raw)!r}: {errors}") from e

    # Проверка content, если валидатор поля не был вызван (content отсутствует)
    if "content" not in raw and record.type not in OPTIONAL_CONTENT:
        raise MalformedDeltaError(f"Malformed delta {dict(raw)!r}: '{record.type.value}' delta must have content")

    return record.to_delta()
