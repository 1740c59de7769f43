"""Error taxonomy shared by the request handlers.

Each error is an ``HTTPException`` with a fixed status code, so handlers raise
them the same way they would raise a plain ``HTTPException`` and the app-level
handler renders every one of them as ``{"success": false, "error": detail}``.
"""

from fastapi import HTTPException, status


class FeedbackError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class ValidationError(FeedbackError):
    """Missing or malformed request fields."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(FeedbackError):
    status_code = status.HTTP_404_NOT_FOUND


class Unauthorized(FeedbackError):
    """No admin credential was presented."""
    status_code = status.HTTP_403_FORBIDDEN


class Forbidden(FeedbackError):
    """An admin credential was presented but does not identify an admin."""
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(FeedbackError):
    """A unique value (phone, product name) is already taken."""
    status_code = status.HTTP_400_BAD_REQUEST


class InternalError(FeedbackError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
