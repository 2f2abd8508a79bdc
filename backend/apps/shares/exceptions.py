from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied, ValidationError


class ShareNotFound(NotFound):
    """
    Unknown or deleted link. Both cases render identically.
    """

    default_detail = "Share link not found."
    default_code = "share_not_found"


class ShareForbidden(PermissionDenied):
    """
    Access refused. When a link gate (inactive/expired/limit) is the cause, the
    computed status is included in the body so clients can show tailored messaging.
    """

    default_detail = "Access denied."
    default_code = "share_forbidden"

    def __init__(self, detail=None, code=None, *, link_status: str | None = None):
        self.link_status = link_status
        if link_status:
            detail = {"detail": str(detail or self.default_detail), "status": link_status}
        super().__init__(detail, code)


class InvalidArgument(ValidationError):
    default_code = "invalid_argument"


class Conflict(APIException):
    # Reserved for optimistic-lock violations.
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflicting update."
    default_code = "conflict"


class Internal(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Shared files are temporarily unavailable."
    default_code = "internal"
