"""
Error taxonomy shared by the HTTP layer and the client context.

Every error is an HTTPException so services can raise them directly and FastAPI
renders them; ``detail`` is always a short message safe to show to a user.
"""

from fastapi import HTTPException, status
from typing import Optional


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Something went wrong. Try again."

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)

    @property
    def user_message(self) -> str:
        return str(self.detail)


class TransportError(AppError):
    """The backing store did not answer (network, timeout, 5xx gateway)."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Connection error. Try again."


class BackendError(AppError):
    """The backing store answered with an error we have no specific mapping for."""
    default_detail = "Something went wrong. Try again."


class NotAuthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not allowed to do this"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidReference(NotFound):
    default_detail = "Invalid reference"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class InvalidTransition(Conflict):
    default_detail = "This session can no longer change to that status"


class CheckinClosed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Check-in is not open for this session"


class BackendFeatureUnavailable(AppError):
    """A server-side computation is not deployed; callers fall back to a local equivalent."""
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    default_detail = "Feature unavailable"

