"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, message_bn: str | None = None):
        """Initialize exception with message, optional Bengali message and status code."""
        self.message = message
        self.message_bn = message_bn
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found", message_bn: str | None = None):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, message_bn=message_bn)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized", message_bn: str | None = None):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401, message_bn=message_bn)


class InvalidTokenException(UnauthorizedException):
    """Token signature, format or type is invalid."""

    def __init__(self, message: str = "Invalid token"):
        """Initialize with 401 status code."""
        super().__init__(message, message_bn="টোকেন অবৈধ")


class ExpiredTokenException(UnauthorizedException):
    """Token is past its expiry."""

    def __init__(self, message: str = "Token has expired"):
        """Initialize with 401 status code."""
        super().__init__(message, message_bn="টোকেনের মেয়াদ শেষ হয়েছে")


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden", message_bn: str | None = None):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403, message_bn=message_bn)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request", message_bn: str | None = None):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, message_bn=message_bn)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict", message_bn: str | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, message_bn=message_bn)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error", message_bn: str | None = None):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422, message_bn=message_bn)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, message: str = "Rate limit exceeded", message_bn: str | None = None):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429, message_bn=message_bn)


class InternalServerException(AppException):
    """Unexpected failure, e.g. the database stayed unreachable after retries."""

    def __init__(self, message: str = "Internal server error", message_bn: str | None = None):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500, message_bn=message_bn)
