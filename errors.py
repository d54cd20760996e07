from typing import Optional


class AppError(Exception):
    """Base for failures that are reported to the caller as ``{"message": ...}``."""

    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AppError):
    status_code = 400
    default_message = "Missing required fields"


class Conflict(AppError):
    status_code = 400
    default_message = "Conflict"


class ActiveBorrowExists(Conflict):
    default_message = "You already have an active borrow request"


class AssetUnavailable(Conflict):
    default_message = "Asset not available"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Unauthorized: please login first"


class InvalidCredential(Unauthorized):
    default_message = "Invalid password"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class UnknownUser(NotFound):
    # /login answers an unknown username with 400, not 404
    status_code = 400
    default_message = "User not found"


class Internal(AppError):
    status_code = 500
    default_message = "Server error"
