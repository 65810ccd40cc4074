from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional

from app.api.deps import get_manager
from app.api.errors import to_http_exception
from app.api.http.documents import ERROR_RESPONSES, version_response
from app.api.ws.sync import connections
from app.core.errors import SyncError
from app.domains.artifacts.console import ConsoleOutput
from app.domains.artifacts.schemas import (
    ConsoleOutputPayload, ConsoleResponse, DraftResponse, DraftUpdate, ErrorResponse, VersionResponse
)
from app.domains.artifacts.services import ArtifactSession, ArtifactSessionManager

router = APIRouter(prefix="/chats", tags=["chats"])


def require_session(chat_id: str, manager: ArtifactSessionManager) -> ArtifactSession:
    session = manager.get(chat_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return session


def console_response(session: ArtifactSession) -> ConsoleResponse:
    return ConsoleResponse(
        outputs=[ConsoleOutputPayload(**output.to_dict()) for output in session.console.outputs],
        revision=session.console.revision
    )


@router.get("/{chat_id}/draft", response_model=DraftResponse, responses={404: {"model": ErrorResponse}})
async def get_draft(
    chat_id: str,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Получение текущего черновика сессии"""
    draft = require_session(chat_id, manager).coordinator.draft

    if draft is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Draft not found"
        )

    return DraftResponse.model_validate(draft)


@router.patch("/{chat_id}/draft", response_model=DraftResponse, responses=ERROR_RESPONSES)
async def update_draft(
    chat_id: str,
    draft_data: DraftUpdate,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Правка содержимого черновика пользователем"""
    session = require_session(chat_id, manager)

    try:
        draft = await session.coordinator.update_content(draft_data.content)
    except SyncError as e:
        raise to_http_exception(e)

    return DraftResponse.model_validate(draft)


@router.post(
    "/{chat_id}/draft/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES
)
async def save_draft(
    chat_id: str,
    author_id: Optional[str] = Query(None),
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Сохранение черновика сессии новой версией"""
    session = require_session(chat_id, manager)

    try:
        version = await session.coordinator.save(author_id)
    except SyncError as e:
        raise to_http_exception(e)

    return version_response(version)


@router.post("/{chat_id}/documents/{document_id}/open", response_model=DraftResponse)
async def open_document(
    chat_id: str,
    document_id: str,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Открытие сохраненного документа в сессии чата"""
    session = manager.get_or_create(chat_id)

    try:
        draft = await session.coordinator.load(document_id)
    except SyncError as e:
        raise to_http_exception(e)

    return DraftResponse.model_validate(draft)


@router.delete("/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    chat_id: str,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Закрытие сессии артефакта"""
    if not await manager.close(chat_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )

    # Клиенты закрытой сессии отключаются
    await connections.close_chat(chat_id)


@router.get("/{chat_id}/console", response_model=ConsoleResponse)
async def get_console(
    chat_id: str,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Получение результатов выполнения"""
    return console_response(require_session(chat_id, manager))


@router.post("/{chat_id}/console", response_model=ConsoleResponse)
async def upsert_console_output(
    chat_id: str,
    output: ConsoleOutputPayload,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Добавление или обновление результата выполнения"""
    session = manager.get_or_create(chat_id)
    await session.console.upsert(ConsoleOutput(
        id=output.id,
        content=output.content,
        status=output.status
    ))
    return console_response(session)


@router.delete("/{chat_id}/console", status_code=status.HTTP_204_NO_CONTENT)
async def clear_console(
    chat_id: str,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Очистка консоли"""
    require_session(chat_id, manager).console.clear()
