"""Domain error taxonomy shared by services and the HTTP layer.

Services raise these; ``Loresmith.app`` renders them as ``{"error": message}``
with the matching status code. ``NotFound`` deliberately covers both "absent"
and "owned by someone else" so existence never leaks across users.
"""

from __future__ import annotations


class LoresmithError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code: int = 500
    # session_scope commits instead of rolling back when set
    keeps_writes: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgument(LoresmithError):
    """Malformed or out-of-range input."""

    status_code = 400


class Unauthorized(LoresmithError):
    """Caller identity missing."""

    status_code = 401


class Forbidden(LoresmithError):
    """Caller identity present but not allowed to act."""

    status_code = 403


class NotFound(LoresmithError):
    """Referenced entity absent or not owned by the caller."""

    status_code = 404


class Conflict(LoresmithError):
    """Uniqueness violation."""

    status_code = 409


class VersionNotRecorded(LoresmithError):
    """The record was written but its history snapshot was not."""

    status_code = 500
    keeps_writes = True
