from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.api.deps import get_db, get_manager, get_store
from app.api.errors import to_http_exception
from app.core.errors import SyncError
from app.db.repositories.suggestion_repository import SuggestionRepository
from app.domains.artifacts.entities import Suggestion, Version
from app.domains.artifacts.schemas import (
    ErrorResponse, RestoreRequest, SuggestionCreate, SuggestionResponse,
    VersionCreate, VersionDiffResponse, VersionListResponse, VersionResponse
)
from app.domains.artifacts.services import ArtifactSessionManager
from app.domains.artifacts.versions import VersionStore

router = APIRouter(prefix="/documents", tags=["documents"])

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def version_response(version: Version) -> VersionResponse:
    return VersionResponse(
        document_id=version.document_id,
        created_at=version.created_at,
        title=version.title,
        kind=version.kind,
        content=version.content,
        author_id=version.author_id,
        word_count=version.get_word_count(),
        content_length=len(version.content)
    )


def suggestion_response(suggestion: Suggestion) -> SuggestionResponse:
    return SuggestionResponse(**suggestion.to_dict())


@router.get("/{document_id}/versions", response_model=VersionListResponse, responses=ERROR_RESPONSES)
async def get_document_versions(
    document_id: str,
    store: VersionStore = Depends(get_store)
):
    """Получение версий документа по возрастанию времени создания"""
    try:
        versions = await store.list(document_id)
        current_index = await store.current_index(document_id)
    except SyncError as e:
        raise to_http_exception(e)

    return VersionListResponse(
        versions=[version_response(version) for version in versions],
        current_index=current_index,
        total=len(versions)
    )


@router.post(
    "/{document_id}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES
)
async def save_document_version(
    document_id: str,
    version_data: VersionCreate,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Явное сохранение новой версии документа"""
    store = manager.store
    try:
        # Открытые черновики документа сбрасываются к новой версии
        coordinators = manager.coordinators_for(document_id)
        for coordinator in coordinators:
            coordinator.ensure_idle("save the document")

        created_at = await store.next_timestamp(document_id)
        version = await store.append(Version(
            document_id=document_id,
            created_at=created_at,
            title=version_data.title,
            kind=version_data.kind,
            content=version_data.content,
            author_id=version_data.author_id
        ))
        await manager.publish_version(version, coordinators)
    except SyncError as e:
        raise to_http_exception(e)

    return version_response(version)


@router.patch("/{document_id}", response_model=VersionResponse, responses=ERROR_RESPONSES)
async def restore_document_version(
    document_id: str,
    restore_request: RestoreRequest,
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Восстановление версии документа как последней"""
    try:
        version = await manager.restore(
            document_id,
            restore_request.timestamp,
            restore_request.author_id
        )
    except SyncError as e:
        raise to_http_exception(e)

    return version_response(version)


@router.get("/{document_id}/versions/diff", response_model=VersionDiffResponse, responses=ERROR_RESPONSES)
async def get_versions_diff(
    document_id: str,
    from_index: int = Query(..., ge=0),
    to_index: int = Query(..., ge=0),
    store: VersionStore = Depends(get_store)
):
    """Сравнение двух версий документа"""
    try:
        diff = await store.diff(document_id, from_index, to_index)
    except SyncError as e:
        raise to_http_exception(e)

    return VersionDiffResponse(
        document_id=document_id,
        from_index=from_index,
        to_index=to_index,
        diff=diff
    )


@router.post("/{document_id}/versions/navigate", responses=ERROR_RESPONSES)
async def navigate_versions(
    document_id: str,
    direction: str = Query(..., pattern="^(prev|next|latest|toggle)$"),
    store: VersionStore = Depends(get_store)
):
    """Переход между версиями документа"""
    try:
        current_index = await store.change_version(document_id, direction)
        is_current = await store.is_current_version(document_id)
    except SyncError as e:
        raise to_http_exception(e)

    return {
        "document_id": document_id,
        "current_index": current_index,
        "is_current_version": is_current,
        "mode": store.mode(document_id).value
    }


@router.get("/{document_id}/suggestions", response_model=List[SuggestionResponse])
async def get_document_suggestions(
    document_id: str,
    db: AsyncSession = Depends(get_db)
):
    """Получение предложений правок документа"""
    try:
        suggestions = await SuggestionRepository(db).list_by_document(document_id)
    except SyncError as e:
        raise to_http_exception(e)

    return [suggestion_response(suggestion) for suggestion in suggestions]


@router.post(
    "/{document_id}/suggestions",
    response_model=List[SuggestionResponse],
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES
)
async def create_document_suggestions(
    document_id: str,
    suggestions_data: List[SuggestionCreate],
    db: AsyncSession = Depends(get_db),
    manager: ArtifactSessionManager = Depends(get_manager)
):
    """Сохранение предложений правок для версии документа"""
    if not suggestions_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one suggestion is required"
        )

    try:
        for created_at in {item.document_created_at for item in suggestions_data}:
            await manager.store.get(document_id, created_at)

        saved = await SuggestionRepository(db).save_suggestions([
            Suggestion(
                document_id=document_id,
                document_created_at=item.document_created_at,
                original_text=item.original_text,
                suggested_text=item.suggested_text,
                description=item.description,
                author_id=item.author_id
            )
            for item in suggestions_data
        ])
        all_suggestions = await SuggestionRepository(db).list_by_document(document_id)
    except SyncError as e:
        raise to_http_exception(e)

    manager.attach_suggestions(document_id, all_suggestions)

    return [suggestion_response(suggestion) for suggestion in saved]
