"""Error taxonomy for the progress engine.

The API layer maps these onto HTTP statuses; nothing below it knows
about HTTP.
"""

from __future__ import annotations


class ProgressError(Exception):
    """Base class for every error the progress engine raises."""


class CompletionValidationError(ProgressError, ValueError):
    """Malformed completion input.  Raised before any state is touched."""

    code = "invalid_completion"


class InvalidResourceTypeError(CompletionValidationError):
    code = "invalid_resource_type"


class InvalidTimestampError(CompletionValidationError):
    code = "invalid_timestamp"


class InvalidDurationError(CompletionValidationError):
    code = "invalid_duration"


class InvalidDomainError(CompletionValidationError):
    code = "invalid_domain"


class InvalidResourceIdError(CompletionValidationError):
    code = "invalid_resource_id"


class CourseNotFoundError(ProgressError, LookupError):
    pass


class CourseModuleNotFoundError(ProgressError, LookupError):
    """The module id is not part of the referenced course."""


class StoreUnavailableError(ProgressError):
    """The backing store failed.  The only transient, retryable kind."""


class ConcurrentUpdateError(ProgressError):
    """A user's stats changed between read and write (optimistic version check)."""


class TutorUnavailableError(Exception):
    """The tutor model endpoint is not configured or failed to answer."""
