"""Election engine exception classes.

Views map these to HTTP status codes; see ``elections.views_utils.error_response``.
"""


class ElectionError(Exception):
    """Base class for errors surfaced to callers of the election engine."""


class InvalidInputError(ElectionError):
    """Malformed dates, missing required scope parameters, bad payloads."""


class ScopeForbiddenError(ElectionError):
    """The caller's college binding does not match the requested scope."""


class PermissionDeniedError(ElectionError):
    """The caller's role may not perform the requested operation."""


class NotFoundError(ElectionError):
    """A referenced election, position, partylist or candidate does not exist."""


class ElectionNotOpenError(ElectionError):
    """Voting is not open for the caller's college."""


class ConstraintViolationError(ElectionError):
    """A storage-level uniqueness constraint rejected the write."""


class AlreadyVotedError(ConstraintViolationError):
    """A ballot marker already exists for this (student, election) pair."""


class AuditLogImmutableError(RuntimeError):
    """Raised on any attempt to update or delete an audit log entry."""


__all__ = [
    "AlreadyVotedError",
    "AuditLogImmutableError",
    "ConstraintViolationError",
    "ElectionError",
    "ElectionNotOpenError",
    "InvalidInputError",
    "NotFoundError",
    "PermissionDeniedError",
    "ScopeForbiddenError",
]
