from fastapi import HTTPException, status

from supporthub.domain.session.errors import (
    ChatError,
    ChatUnavailable,
    ChatValidationError,
    SessionConflict,
    SessionNotFound,
)

_STATUS_BY_ERROR = (
    (SessionNotFound, status.HTTP_404_NOT_FOUND),
    (SessionConflict, status.HTTP_409_CONFLICT),
    (ChatUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ChatValidationError, status.HTTP_400_BAD_REQUEST),
)


def http_error(error: ChatError) -> HTTPException:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=code, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
