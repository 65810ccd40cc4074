from enum import Enum
from typing import Optional

from app.domains.artifacts.deltas import Delta, DeltaType
from app.domains.artifacts.entities import ArtifactKind, Draft, DraftStatus

KNOWN_KINDS = {kind.value: kind for kind in ArtifactKind}


class ContentPolicy(str, Enum):
    """Как content-дельта применяется к содержимому"""
    REPLACE = "replace"
    APPEND = "append"


def initial_draft() -> Draft:
    """Черновик, создаваемый при первой дельте потока"""
    return Draft(
        document_id="",
        title="",
        kind=ArtifactKind.TEXT,
        content="",
        status=DraftStatus.STREAMING,
        is_visible=False,
    )


def apply_content(current: str, payload: str, policy: ContentPolicy = ContentPolicy.REPLACE) -> str:
    if policy == ContentPolicy.APPEND:
        return current + payload
    return payload


def reduce(
    draft: Optional[Draft],
    delta: Delta,
    policy: ContentPolicy = ContentPolicy.REPLACE,
) -> Draft:
    """Применение одной дельты к черновику.

    Функция чистая и не бросает исключений: входной черновик не изменяется,
    возвращается новый.
    Дельта user-message-id черновик не трогает.
    """
    if delta.type == DeltaType.USER_MESSAGE_ID:
        return draft.copy() if draft is not None else Draft()

    base = draft.copy() if draft is not None else initial_draft()

    if delta.type == DeltaType.ID:
        return base.copy(document_id=delta.content, status=DraftStatus.STREAMING)

    if delta.type == DeltaType.TITLE:
        return base.copy(title=delta.content, status=DraftStatus.STREAMING)

    if delta.type == DeltaType.KIND:
        # Неизвестный тип артефакта не меняет текущий
        kind = KNOWN_KINDS.get(delta.content, base.kind)
        return base.copy(kind=kind, status=DraftStatus.STREAMING)

    if delta.type in (DeltaType.TEXT_DELTA, DeltaType.CODE_DELTA):
        return base.copy(
            content=apply_content(base.content, delta.content, policy),
            status=DraftStatus.STREAMING,
        )

    if delta.type == DeltaType.CLEAR:
        return base.copy(content="", status=DraftStatus.STREAMING)

    if delta.type == DeltaType.FINISH:
        return base.copy(status=DraftStatus.IDLE)

    return base


def delta_matches_kind(draft: Draft, delta: Delta) -> bool:
    """text-delta относится к текстовому артефакту, code-delta к коду"""
    if delta.type == DeltaType.TEXT_DELTA:
        return draft.kind == ArtifactKind.TEXT
    if delta.type == DeltaType.CODE_DELTA:
        return draft.kind == ArtifactKind.CODE
    return True
