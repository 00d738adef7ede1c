"""
Exceptions raised by the domain services.

All of them are ``ValueError`` subclasses so callers that only care about
"the operation was refused" can keep catching ``ValueError``. Routes map the
subclasses to HTTP status codes; a bare ``ValueError`` is a failed
precondition or invalid input (400).
"""


class NotFoundError(ValueError):
    """Raised when a referenced team, match, request or invitation does not exist."""


class PermissionDeniedError(ValueError):
    """Raised when the acting user lacks the role an operation requires."""


class ConflictError(ValueError):
    """Raised when the operation would duplicate an existing record."""


class MatchRequestConflictError(ConflictError):
    """Raised when another request was accepted for the match first."""
