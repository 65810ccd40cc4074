from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.domains.artifacts.entities import Suggestion


@dataclass(frozen=True)
class AnchoredSuggestion:
    """Предложение с позицией в текущем содержимом"""

    suggestion: Suggestion
    start: Optional[int] = None
    end: Optional[int] = None

    @property
    def is_anchored(self) -> bool:
        return self.start is not None


class SuggestionOverlay:
    """Слой предложений поверх содержимого документа.

    Предложения привязываются к первому вхождению original_text после
    предыдущей привязки. Статус is_resolved не меняется.
    """

    def __init__(self, suggestions: Sequence[Suggestion] = ()):
        self._suggestions: List[Suggestion] = list(suggestions)
        self._anchored: List[AnchoredSuggestion] = []

    @property
    def suggestions(self) -> List[Suggestion]:
        return list(self._suggestions)

    @property
    def anchored(self) -> List[AnchoredSuggestion]:
        return list(self._anchored)

    def set_suggestions(self, suggestions: Sequence[Suggestion]) -> None:
        self._suggestions = list(suggestions)
        self._anchored = []

    def anchor(self, content: str) -> List[AnchoredSuggestion]:
        """Пересчет позиций предложений для нового содержимого"""
        anchored = []
        cursor = 0

        for suggestion in self._suggestions:
            if not suggestion.original_text:
                anchored.append(AnchoredSuggestion(suggestion))
                continue

            start = content.find(suggestion.original_text, cursor)
            if start == -1:
                # Повторный поиск с начала: порядок предложений мог не совпасть с текстом
                start = content.find(suggestion.original_text)

            if start == -1:
                anchored.append(AnchoredSuggestion(suggestion))
                continue

            end = start + len(suggestion.original_text)
            anchored.append(AnchoredSuggestion(suggestion, start, end))
            cursor = end

        self._anchored = anchored
        return self.anchored
