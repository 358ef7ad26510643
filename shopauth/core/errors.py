# shopauth/core/errors.py
from fastapi import status


class ServiceError(Exception):
    """Base class for failures that end up in a response envelope.

    `message` is what the caller sees; `reason` is an internal detail that is
    only ever logged.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: str | None = None, *, reason: str | None = None) -> None:
        self.message = message or self.default_message
        self.reason = reason
        super().__init__(self.message)


class InvalidCredentials(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class InvalidToken(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class Conflict(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User already exists"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ExternalExchangeFailure(ServiceError):
    """The OAuth platform rejected or failed a call."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "The Shopify platform request failed"


class InternalError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An internal error occurred"


__all__ = [
    "ServiceError",
    "InvalidCredentials",
    "InvalidToken",
    "Conflict",
    "NotFound",
    "ExternalExchangeFailure",
    "InternalError",
]
