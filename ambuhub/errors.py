"""Errors raised by the stores and guards.

All of them are caught by the exception handlers registered in ``main`` and
turned into a status code plus a plain message.
"""


class AmbuHubError(Exception):
    status_code = 400
    message = "bad request"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class DuplicateEmail(AmbuHubError):
    message = "email already registered"


class UserNotFound(AmbuHubError, LookupError):
    message = "user not found"


class InvalidCredentials(AmbuHubError):
    status_code = 400
    message = "invalid credentials"


class Unauthenticated(AmbuHubError):
    status_code = 401
    message = "login required"


class Forbidden(AmbuHubError):
    status_code = 403
    message = "Access denied. You do not have permission to view this page."


class NotFoundOrForbidden(AmbuHubError):
    status_code = 404
    message = "product not found"


class PersistenceError(AmbuHubError):
    status_code = 503
    message = "database error"


class UploadError(AmbuHubError):
    message = "invalid image upload"
