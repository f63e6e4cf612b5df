"""Election exception classes.

Every error carries a user-facing message; ``PersistenceError`` is the only
one that is safe to retry.
"""


class ElectionError(Exception):
    pass


class ScopeAuthorizationError(ElectionError):
    """The caller's role/scope cannot reach the requested election or slice."""


class ElectionNotOpenError(ElectionError):
    """The election's effective status for the caller's scope is not ongoing."""


class AlreadyVotedError(ElectionError):
    """The student's dedup marker exists. Terminal, never retried."""


class BallotValidationError(ElectionError):
    """Malformed selections, position/candidate mismatch, or an over/under-vote."""

    def __init__(self, message: str, *, position_id: int | None = None, candidate_id: int | None = None) -> None:
        super().__init__(message)
        self.position_id = position_id
        self.candidate_id = candidate_id


class PersistenceError(ElectionError):
    """The ballot transaction could not be committed for infrastructure reasons."""


class ElectionStatusError(ElectionError):
    """Stored election data does not resolve to a defined lifecycle state."""


class ExtensionError(ElectionError):
    pass


__all__ = [
    "AlreadyVotedError",
    "BallotValidationError",
    "ElectionError",
    "ElectionNotOpenError",
    "ElectionStatusError",
    "ExtensionError",
    "PersistenceError",
    "ScopeAuthorizationError",
]
