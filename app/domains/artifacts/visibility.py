from app.domains.artifacts.deltas import Delta, DeltaType
from app.domains.artifacts.entities import ArtifactKind, Draft

DEFAULT_VISIBILITY_THRESHOLD = 400


class VisibilityGate:
    """Правило, по которому потоковый документ становится видимым.

    Пустую или почти пустую панель не показываем, уже показанную не скрываем.
    Код показывается сразу после первой code-дельты.
    """

    def __init__(self, threshold: int = DEFAULT_VISIBILITY_THRESHOLD):
        if threshold < 0:
            raise ValueError("Visibility threshold must be non-negative")
        self.threshold = threshold
        self._code_delta_seen = False

    @property
    def code_delta_seen(self) -> bool:
        return self._code_delta_seen

    def observe(self, delta: Delta) -> None:
        """Учет дельты до применения gate"""
        if delta.type == DeltaType.CODE_DELTA and delta.content:
            self._code_delta_seen = True

    def reset(self) -> None:
        """Сброс наблюдений для нового документа"""
        self._code_delta_seen = False

    def gate(self, draft: Draft) -> Draft:
        if draft.is_visible:
            return draft

        if len(draft.content) > self.threshold:
            return draft.copy(is_visible=True)

        if draft.kind == ArtifactKind.CODE and self._code_delta_seen:
            return draft.copy(is_visible=True)

        return draft

    def __repr__(self) -> str:
        return f"VisibilityGate(threshold={self.threshold}, code_delta_seen={self._code_delta_seen})"
