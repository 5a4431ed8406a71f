"""Domain errors and their HTTP rendering."""
from typing import Optional

from fastapi import status


class SeshPrepError(Exception):
    """Base class for every error the API reports to clients."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(SeshPrepError, ValueError):
    """Malformed input. Never retried.

    Also a ``ValueError`` so pydantic validators report it as a field error.
    """

    status_code = status.HTTP_400_BAD_REQUEST


class NotAuthenticated(SeshPrepError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AccessDenied(SeshPrepError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(SeshPrepError):
    status_code = status.HTTP_404_NOT_FOUND


class AlreadyExists(SeshPrepError):
    """Integrity or uniqueness violation."""

    status_code = status.HTTP_409_CONFLICT


class RateLimited(SeshPrepError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class InvitationError(SeshPrepError):
    """Invitation token could not be used; ``reason`` is invalid, already-used or expired."""

    status_code = status.HTTP_400_BAD_REQUEST

    MESSAGES = {
        "invalid": "Invalid invitation link",
        "already-used": "This invitation has already been used",
        "expired": "This invitation has expired",
    }

    def __init__(self, reason: str):
        super().__init__(self.MESSAGES.get(reason, "Invalid invitation link"))
        self.reason = reason


class InvalidRecoveryCredential(SeshPrepError):
    status_code = status.HTTP_400_BAD_REQUEST


class TransientStorageError(SeshPrepError):
    """Transport failure against object storage; safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class EmailDeliveryError(SeshPrepError):
    status_code = status.HTTP_502_BAD_GATEWAY
