from fastapi import HTTPException, status


class ShuttleDomainError(ValueError):
    """Rejection that is shown to the end user as-is"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotFoundError(ShuttleDomainError):
    pass


class PermissionDeniedError(ShuttleDomainError):
    pass


class InvalidStateError(ShuttleDomainError):
    pass


def to_http_exception(error: ValueError) -> HTTPException:
    """Map a rejected operation to the HTTP error returned by the routers"""
    if isinstance(error, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, PermissionDeniedError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, InvalidStateError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=str(error))
