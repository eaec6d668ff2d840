"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class UnauthenticatedError(AppError):
    """Raised when an action needs a signed-in user."""

    def __init__(self, message="You must be logged in."):
        """Initialize the error."""
        super().__init__(message, 401)


class PermissionDeniedError(AppError):
    """Raised when the user may not act on a resource."""

    def __init__(self, message="You are not allowed to do that."):
        """Initialize the error."""
        super().__init__(message, 403)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class DuplicateResourceError(AppError):
    """Raised when trying to create a resource that already exists."""

    def __init__(self, message="Resource already exists."):
        """Initialize the error."""
        super().__init__(message, 409)


class EventFullError(AppError):
    """Raised when an event has no free places left."""

    def __init__(self, message="This event is full."):
        """Initialize the error."""
        super().__init__(message, 409)


class ServiceUnavailableError(AppError):
    """Raised when a backing service could not complete a request."""

    def __init__(self, message="Service unavailable. Please try again."):
        """Initialize the error."""
        super().__init__(message, 503)
