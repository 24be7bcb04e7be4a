"""Domain errors raised by the service layer and translated by the routers."""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BrokerageError(Exception):
    """Base exception for the brokerage desk backend."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message, **self.context}


class ValidationFailed(BrokerageError, ValueError):
    """Input rejected before anything was persisted."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None, **context: Any):
        if fields:
            context["fields"] = fields
        super().__init__(message, **context)
        self.fields = fields or {}


class NotFound(BrokerageError, LookupError):
    status_code = status.HTTP_404_NOT_FOUND


class AuthenticationFailed(BrokerageError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(BrokerageError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(BrokerageError):
    """Expected, recoverable clash with current state."""

    status_code = status.HTTP_409_CONFLICT


class DuplicateInquiry(ConflictError):
    pass


class AlreadyClaimed(ConflictError):
    pass


class ScheduleConflict(ConflictError):
    pass


class CommissionAlreadyPaid(ConflictError):
    pass


def to_http_exception(exc: BrokerageError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())
