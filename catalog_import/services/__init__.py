"""Pipeline services: mapping, projection, validation, reconciliation, session, commit."""

from .commit import CommitError, CommitExecutor, NothingToCommit, StoreWriteError
from .session import ImportSession, ReconciliationBlockedError, SessionStateError

__all__ = [
    "CommitError",
    "CommitExecutor",
    "ImportSession",
    "NothingToCommit",
    "ReconciliationBlockedError",
    "SessionStateError",
    "StoreWriteError",
]
