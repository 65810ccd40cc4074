import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from app.core.errors import NotFoundError

logger = logging.getLogger(__name__)

ConsoleContent = Union[str, Dict[str, Any]]


class ConsoleStatus(str, Enum):
    """Статус выполнения инструмента"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ConsoleOutput:
    """Результат одного запуска кода или инструмента"""

    id: str
    content: ConsoleContent = ""
    status: ConsoleStatus = ConsoleStatus.IN_PROGRESS

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "content": self.content, "status": self.status.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsoleOutput":
        return cls(
            id=str(data["id"]),
            content=data.get("content", ""),
            status=ConsoleStatus(data.get("status", ConsoleStatus.IN_PROGRESS.value)),
        )


def error_payload(error: Union[BaseException, str], error_type: Optional[str] = None) -> Dict[str, str]:
    """Структурированное описание ошибки выполнения"""
    if isinstance(error, BaseException):
        return {"type": error_type or type(error).__name__, "message": str(error)}
    return {"type": error_type or "Error", "message": error}


class ConsoleAggregator:
    """Упорядоченная коллекция результатов выполнения по ключу id.

    Порядок соответствует первому появлению id. Счетчик revision растет,
    когда меняется длина коллекции или id последнего элемента: по нему
    внешний слой прокручивает консоль к новой записи.
    """

    def __init__(self):
        self._outputs: List[ConsoleOutput] = []
        self._positions: Dict[str, int] = {}
        self._revision = 0
        self._lock = asyncio.Lock()

    @property
    def outputs(self) -> Tuple[ConsoleOutput, ...]:
        return tuple(self._outputs)

    @property
    def revision(self) -> int:
        return self._revision

    def get(self, output_id: str) -> Optional[ConsoleOutput]:
        position = self._positions.get(output_id)
        return self._outputs[position] if position is not None else None

    async def upsert(self, output: ConsoleOutput) -> ConsoleOutput:
        """Добавление результата или замена существующего с тем же id"""
        async with self._lock:
            identity = self._identity()
            position = self._positions.get(output.id)

            if position is None:
                self._positions[output.id] = len(self._outputs)
                self._outputs.append(output)
                logger.debug(f"Console output {output.id} added ({output.status.value})")
            else:
                self._outputs[position] = output
                logger.debug(f"Console output {output.id} replaced ({output.status.value})")

            self._bump(identity)
            return output

    async def complete(self, output_id: str, content: ConsoleContent) -> ConsoleOutput:
        current = self._require(output_id)
        return await self.upsert(replace(current, content=content, status=ConsoleStatus.COMPLETED))

    async def fail(self, output_id: str, error: Union[BaseException, str]) -> ConsoleOutput:
        current = self._require(output_id)
        return await self.upsert(replace(current, content=error_payload(error), status=ConsoleStatus.FAILED))

    def clear(self) -> None:
        """Очистка консоли по действию пользователя"""
        identity = self._identity()
        self._outputs.clear()
        self._positions.clear()
        self._bump(identity)

    def _require(self, output_id: str) -> ConsoleOutput:
        output = self.get(output_id)
        if output is None:
            raise NotFoundError(f"Console output {output_id} not found")
        return output

    def _identity(self) -> Tuple[int, Optional[str]]:
        return len(self._outputs), (self._outputs[-1].id if self._outputs else None)

    def _bump(self, previous: Tuple[int, Optional[str]]) -> None:
        if self._identity() != previous:
            self._revision += 1

    def __len__(self) -> int:
        return len(self._outputs)

    def __iter__(self):
        return iter(self.outputs)

    def __repr__(self) -> str:
        return f"ConsoleAggregator(outputs={len(self)}, revision={self._revision})"
