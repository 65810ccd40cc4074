from typing import Any, Dict


class SyncError(Exception):
    """Базовая ошибка движка синхронизации артефактов"""

    kind = "sync_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Структурированное описание ошибки для UI-слоя"""
        return {"kind": self.kind, "message": self.message}


class MalformedDeltaError(SyncError):
    """Дельта без обязательных полей или с неизвестным типом"""

    kind = "malformed_delta"


class ConflictError(SyncError):
    """Версия с такой парой (document_id, created_at) уже существует"""

    kind = "conflict"


class PersistenceError(SyncError):
    """Ошибка сохранения или восстановления версии"""

    kind = "persistence"


class NotFoundError(SyncError):
    """Запрошенная версия или запись не найдена"""

    kind = "not_found"
