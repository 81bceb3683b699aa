"""
Service-layer errors mapped to HTTP outcomes by the routes.
"""


class ServiceError(Exception):
    """Base service error."""


class NotFoundError(ServiceError):
    """Raised when an application, template, request or token does not exist."""


class AlreadyExistsError(ServiceError):
    """Raised when a live third-party request already exists for the pair."""


class AlreadySubmittedError(ServiceError):
    """Raised when a third-party slot has been submitted and is not reopened."""


class ValidationError(ServiceError, ValueError):
    """Raised when payload validation fails before persistence."""
