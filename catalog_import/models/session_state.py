from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from .dataset import CatalogEntity, Dataset

"""Session lifecycle enum and result models for the import session.

The SessionStage enum is the state of the ImportSession state machine; the
CommitResult is the terminal record a session leaves behind (committed, failed
or cancelled); PreviewStatistics is what the preview stage reports instead of
raising when rows carry errors.
"""

__all__ = [
    "CommitResult",
    "CommitStatus",
    "PreviewStatistics",
    "SessionStage",
    "TERMINAL_STAGES",
]


class SessionStage(Enum):
    """Stage of an ImportSession.

    Transitions: upload → mapping → preview → (reconciliation_pending) →
    committing → committed. `failed` is reachable on unrecoverable errors and
    after a failed write; `cancelled` by explicit operator action.

    - UPLOAD: waiting for a parseable file
    - MAPPING: file parsed, waiting for a complete column mapping
    - PREVIEW: candidate records projected and validated
    - RECONCILIATION_PENDING: referenced entities missing from the catalog
    - COMMITTING: writing to the store
    - COMMITTED: dataset persisted
    - FAILED: commit attempt failed (approved records retained for retry)
    - CANCELLED: discarded by the operator
    """
    UPLOAD = "upload"
    MAPPING = "mapping"
    PREVIEW = "preview"
    RECONCILIATION_PENDING = "reconciliation_pending"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STAGES = frozenset({SessionStage.COMMITTED, SessionStage.CANCELLED})


class CommitStatus(Enum):
    COMMITTED = "committed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PreviewStatistics:
    total: int  # all candidate rows
    valid: int  # rows without errors
    errors: int  # rows with at least one error
    selected: int  # rows with is_selected
    eligible: int  # selected and valid = rows a commit would write

    # sales imports only, computed over eligible rows
    distinct_codes: int = 0
    total_quantity: Decimal = Decimal(0)
    total_revenue: Decimal = Decimal(0)  # sum of quantity * unit_price
    unmatched: int = 0  # referenced codes still without a resolution


@dataclass(frozen=True)
class CommitResult:
    """Terminal result recorded on the session."""
    status: CommitStatus
    dataset: Dataset | None = None
    committed_rows: int = 0
    excluded_rows: int = 0  # error or unselected rows left out
    created_entities: list[CatalogEntity] = field(default_factory=list)
    reason: str | None = None  # human readable failure / cancellation reason
    unresolved_codes: tuple[str, ...] = ()
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == CommitStatus.COMMITTED
