from fastapi import HTTPException, status

from app.core.errors import ConflictError, MalformedDeltaError, NotFoundError, PersistenceError, SyncError

STATUS_BY_ERROR = {
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
    MalformedDeltaError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def to_http_exception(error: SyncError) -> HTTPException:
    """Преобразование ошибки движка в HTTP-ответ"""
    status_code = STATUS_BY_ERROR.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=error.to_dict())
