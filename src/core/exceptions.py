"""Custom exception classes for the LearnAble backend.

Every failure a handler can report is one of the kinds below. Each kind
carries the string key rendered in the ``error`` field of the response body
and the HTTP status it maps to.
"""


class LearnAbleError(Exception):
    """Base exception for all LearnAble errors."""

    error = "InternalError"
    status_code = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        """Initialize the exception.

        Args:
            message: Human-readable description shown to the caller.
        """
        self.message = message
        super().__init__(message)


class BadRequestError(LearnAbleError):
    """Raised when request data fails validation."""

    error = "BadRequest"
    status_code = 400


class UnauthorizedError(LearnAbleError):
    """Raised when the caller is not authenticated."""

    error = "Unauthorized"
    status_code = 401

    def __init__(self, message: str = "Invalid authentication credentials"):
        super().__init__(message)


class ForbiddenError(LearnAbleError):
    """Raised when the caller lacks the capability for an action."""

    error = "Forbidden"
    status_code = 403


class NotFoundError(LearnAbleError):
    """Raised when a requested entity does not exist."""

    error = "NotFound"
    status_code = 404

    def __init__(self, entity: str, entity_id: object = None):
        """Initialize the exception.

        Args:
            entity: Kind of entity, e.g. "School" or "Invitation".
            entity_id: Optional identifier that was looked up.
        """
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity} not found")
        else:
            super().__init__(f"{entity} '{entity_id}' not found")


class ConflictError(LearnAbleError):
    """Raised when a create collides with an existing row."""

    error = "Conflict"
    status_code = 409


class RateLimitedError(LearnAbleError):
    """Raised when too many operations happen within a window."""

    error = "RateLimited"
    status_code = 429


class GenerationExhaustedError(LearnAbleError):
    """Raised when no unique code could be produced within the attempt budget."""

    error = "GenerationExhausted"
    status_code = 500

    def __init__(self, message: str = "Failed to generate a unique code"):
        super().__init__(message)


class ExpiredError(LearnAbleError):
    """Raised when an invitation or code is past its expiry."""

    error = "Expired"
    status_code = 410


class AlreadyAcceptedError(LearnAbleError):
    """Raised when an invitation has already been consumed."""

    error = "AlreadyAccepted"
    status_code = 409

    def __init__(self, message: str = "Invitation has already been accepted"):
        super().__init__(message)


class EmailMismatchError(LearnAbleError):
    """Raised when the accepting identity is not the invited email."""

    error = "EmailMismatch"
    status_code = 403

    def __init__(self, message: str = "This invitation was issued to a different email"):
        super().__init__(message)


class InternalError(LearnAbleError):
    """Raised when a store operation fails unexpectedly."""

    pass


class LLMError(LearnAbleError):
    """Raised when there is an error communicating with the LLM."""

    error = "InternalError"
    status_code = 502
