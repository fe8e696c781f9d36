from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Mapping
from decimal import Decimal
from pathlib import PurePath

from ..db.store import CatalogStore
from ..errors import CatalogImportError
from ..logging.error_log import ErrorLogBuffer
from ..models.candidate_record import CandidateRecord
from ..models.column_mapping import ColumnMapping
from ..models.config_models import ImportConfig
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.import_kind import CanonicalField, ImportKind
from ..models.reconciliation import Resolution, UnmatchedEntity
from ..models.session_state import (
    TERMINAL_STAGES,
    CommitResult,
    CommitStatus,
    PreviewStatistics,
    SessionStage,
)
from ..models.tabular import DetectedEncoding, RawFile, TabularData
from ..tabular.errors import ParseError
from ..tabular.reader import read_tabular
from .column_mapper import apply_overrides, auto_map, missing_required, remap
from .commit import CommitError, CommitExecutor
from .projector import edit_record, project
from .reconciliation import CatalogIndex, ResolutionError, find_unmatched, resolution_key, resolve
from .validator import set_selected, validate_all

"""ImportSession: the state machine driving one import.

    UPLOAD -> MAPPING -> PREVIEW -> [RECONCILIATION_PENDING] -> COMMITTING -> COMMITTED
                                                                    |
                                                                  FAILED (retry_commit)
    any non-terminal stage -> CANCELLED

Nothing is written before COMMITTING. A parse error keeps the session on
UPLOAD with `last_error` set; an incomplete mapping keeps it on MAPPING with
`message` set; a failed commit keeps the approved records and resolutions so
retry_commit() needs no re-upload.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CANCELLED_UNMATCHED_REASON",
    "INCOMPLETE_MAPPING_MESSAGE",
    "ImportSession",
    "ReconciliationBlockedError",
    "SessionStateError",
]

INCOMPLETE_MAPPING_MESSAGE = "select all required columns"
CANCELLED_UNMATCHED_REASON = "cancelled due to unmatched entities"
CANCELLED_REASON = "cancelled by operator"


class SessionStateError(CatalogImportError):
    """Raised when an operation is not allowed in the current stage."""


class ReconciliationBlockedError(CatalogImportError):
    """Raised by confirm() while unmatched entities are unresolved."""

    def __init__(self, missing: tuple[str, ...]) -> None:
        self.missing = missing
        super().__init__(f"unresolved entities: {', '.join(missing)}")


class ImportSession:
    def __init__(
        self,
        kind: ImportKind,
        store: CatalogStore,
        config: ImportConfig | None = None,
        *,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.kind = kind
        self.store = store
        self.config = config or ImportConfig()
        self.error_log = error_log if error_log is not None else ErrorLogBuffer(self.config.error_log_dir)

        self.stage = SessionStage.UPLOAD
        self.raw_file: RawFile | None = None
        self.encoding: DetectedEncoding | None = None
        self.tabular: TabularData | None = None
        self.mapping: ColumnMapping | None = None
        self.records: list[CandidateRecord] = []
        self.unmatched: list[UnmatchedEntity] = []
        self.resolutions: dict[str, Resolution] = {}
        self.result: CommitResult | None = None
        self.last_error: str | None = None
        self.message: str | None = None

        self.dataset_name: str | None = None
        self.set_reference = False
        self._executor = CommitExecutor(
            store,
            auto_generate_code=self.config.auto_generate_code,
            code_prefix=self.config.code_prefix(kind),
        )
        self._flushed = False

    # -- helpers ---------------------------------------------------------

    @property
    def file_name(self) -> str:
        return self.raw_file.name if self.raw_file else ""

    @property
    def required_fields(self) -> frozenset[CanonicalField]:
        return self.kind.required_fields(self.config.auto_generate_code)

    def _require(self, action: str, *stages: SessionStage) -> None:
        if self.stage not in stages:
            raise SessionStateError(f"cannot {action} in stage '{self.stage.value}'")

    def _record_error(self, error_type: str, message: str, row: int = FILE_LEVEL_ROW, file: str | None = None) -> None:
        self.error_log.append(ErrorRecord.create(
            file=file if file is not None else self.file_name,
            kind=self.kind.value,
            row=row,
            error_type=error_type,
            message=message,
        ))

    def _record(self, index: int) -> CandidateRecord:
        try:
            return self.records[index]
        except IndexError:
            raise IndexError(f"no preview row at index {index}") from None

    # -- upload / mapping ------------------------------------------------

    def upload(
        self,
        raw: RawFile,
        *,
        delimiter: str | None = None,
        has_header: bool | None = None,
        encoding: DetectedEncoding | None = None,
    ) -> bool:
        """Parse `raw` and auto-map its headers.

        Returns False (stage stays UPLOAD, `last_error` set) when the file
        cannot be parsed.
        """
        self._require("upload a file", SessionStage.UPLOAD, SessionStage.MAPPING)
        if encoding is None and self.config.encoding != "auto":
            encoding = DetectedEncoding.from_label(self.config.encoding)
        try:
            tabular = read_tabular(
                raw,
                delimiter=delimiter if delimiter is not None else self.config.delimiter,
                has_header=has_header if has_header is not None else self.config.has_header,
                encoding=encoding,
                sample_size=self.config.encoding_sample_bytes,
            )
        except ParseError as e:
            self.stage = SessionStage.UPLOAD
            self.last_error = str(e)
            self._record_error(e.error_type, str(e), file=raw.name)
            logger.error(f"parse: {e}")
            return False

        self.raw_file = raw
        self.tabular = tabular
        self.encoding = tabular.encoding
        synonyms = self.config.synonyms_for(self.kind)
        if self.stage == SessionStage.MAPPING and self.mapping is not None:
            # re-upload from the mapping step keeps the operator's column choices
            self.mapping = remap(tabular.headers, synonyms, self.mapping)
        else:
            self.mapping = auto_map(tabular.headers, synonyms, self.kind)
        self.records = []
        self.last_error = None
        self.message = None
        self.stage = SessionStage.MAPPING
        logger.info(
            f"file={raw.name} rows={len(tabular.rows)} columns={tabular.width} "
            f"encoding={tabular.encoding.value if tabular.encoding else '-'}"
        )
        logger.debug("auto-map: %s", self.mapping.as_dict())
        return True

    def set_column(self, field: CanonicalField, index: int | None) -> None:
        self.set_columns({field: index})

    def set_columns(self, overrides: Mapping[CanonicalField, int | None]) -> None:
        """Manual mapping choices. Going back from PREVIEW discards the preview."""
        self._require("change the column mapping", SessionStage.MAPPING, SessionStage.PREVIEW)
        assert self.tabular is not None and self.mapping is not None
        for f, idx in overrides.items():
            if idx is not None and not 0 <= idx < self.tabular.width:
                raise ValueError(f"column index {idx} out of range for '{f.value}' (0..{self.tabular.width - 1})")
        self.mapping = apply_overrides(self.mapping, overrides)
        if self.stage == SessionStage.PREVIEW:
            self.records = []
            self.stage = SessionStage.MAPPING

    def missing_fields(self) -> list[CanonicalField]:
        if self.mapping is None:
            return sorted(self.required_fields, key=lambda f: self.kind.fields.index(f))
        return missing_required(self.mapping, self.required_fields)

    def is_mapping_complete(self) -> bool:
        return self.mapping is not None and not self.missing_fields()

    # -- preview ---------------------------------------------------------

    def generate_preview(self) -> bool:
        """Project and validate every row.

        Returns False and sets `message` when a required field is unmapped.
        """
        self._require("generate a preview", SessionStage.MAPPING, SessionStage.PREVIEW)
        assert self.tabular is not None and self.mapping is not None
        if not self.is_mapping_complete():
            self.message = INCOMPLETE_MAPPING_MESSAGE
            logger.warning(
                f"mapping incomplete: missing {', '.join(f.value for f in self.missing_fields())}"
            )
            return False
        self.message = None
        self.records = project(self.tabular, self.mapping)
        self._revalidate()
        self.stage = SessionStage.PREVIEW
        stats = self.statistics()
        logger.info(f"preview rows={stats.total} valid={stats.valid} errors={stats.errors}")
        if self.kind == ImportKind.SALE:
            logger.info(
                f"sales products={stats.distinct_codes} quantity={stats.total_quantity} "
                f"revenue={stats.total_revenue}"
            )
        return True

    def _revalidate(self) -> None:
        creates = self.kind.spec.creates
        existing = self.store.list_entities(creates) if creates is not None else []
        validate_all(
            self.records,
            existing,
            duplicate_match=self.config.duplicate_match,
            auto_generate_code=self.config.auto_generate_code,
        )

    def statistics(self) -> PreviewStatistics:
        """Row counts; sales imports also get quantity / revenue totals.

        The unmatched count follows the resolutions made so far, so it drops
        as the operator resolves codes during reconciliation.
        """
        errors = sum(1 for r in self.records if r.has_error)
        stats = PreviewStatistics(
            total=len(self.records),
            valid=len(self.records) - errors,
            errors=errors,
            selected=sum(1 for r in self.records if r.is_selected),
            eligible=sum(1 for r in self.records if r.is_eligible),
        )
        if self.kind != ImportKind.SALE:
            return stats

        eligible = [r for r in self.records if r.is_eligible]
        quantity = sum((r.number(CanonicalField.QUANTITY) for r in eligible), Decimal(0))
        revenue = sum(
            (r.number(CanonicalField.QUANTITY) * r.number(CanonicalField.UNIT_PRICE) for r in eligible),
            Decimal(0),
        )
        return dataclasses.replace(
            stats,
            distinct_codes=len({resolution_key(r.reference_code()) for r in eligible if r.reference_code()}),
            total_quantity=quantity,
            total_revenue=revenue,
            unmatched=len(self.pending_codes()),
        )

    def edit_record(self, index: int, changes: Mapping[CanonicalField, str]) -> CandidateRecord:
        """Inline edit of one preview row; every row is re-validated."""
        self._require("edit a row", SessionStage.PREVIEW)
        record = edit_record(self._record(index), changes)
        self._revalidate()
        return record

    def set_selected(self, index: int, selected: bool) -> bool:
        """Select / unselect one row. No-op (False) for rows with errors."""
        self._require("change the selection", SessionStage.PREVIEW)
        return set_selected(self._record(index), selected)

    def select_all(self, selected: bool = True) -> int:
        self._require("change the selection", SessionStage.PREVIEW)
        return sum(1 for r in self.records if set_selected(r, selected))

    # -- reconciliation --------------------------------------------------

    def pending_codes(self) -> tuple[str, ...]:
        return resolve(self.unmatched, self.resolutions).missing

    def _unmatched_entity(self, code: str) -> UnmatchedEntity:
        key = resolution_key(code)
        for u in self.unmatched:
            if resolution_key(u.external_code) == key:
                return u
        raise ResolutionError(f"'{code}' is not an unmatched code of this session")

    def map_to_existing(self, code: str, entity_id: str) -> None:
        self._require("resolve entities", SessionStage.RECONCILIATION_PENDING)
        reference = self.kind.spec.reference
        assert reference is not None
        unmatched = self._unmatched_entity(code)
        entity = self.store.get_by_id(entity_id)
        if entity is None or entity.kind != reference.entity_kind:
            raise ResolutionError(f"no {reference.entity_kind.value} with id '{entity_id}'")
        self.resolutions[resolution_key(code)] = Resolution.map_existing(unmatched.external_code, entity_id)

    def mark_create_new(self, code: str) -> None:
        self._require("resolve entities", SessionStage.RECONCILIATION_PENDING)
        unmatched = self._unmatched_entity(code)
        self.resolutions[resolution_key(code)] = Resolution.create_new(unmatched.external_code)

    def mark_all_create_new(self) -> int:
        pending = self.pending_codes()
        for code in pending:
            self.mark_create_new(code)
        return len(pending)

    # -- commit ----------------------------------------------------------

    def confirm(self, *, dataset_name: str | None = None, set_reference: bool | None = None) -> CommitResult | None:
        """Operator confirmation.

        From PREVIEW: moves to RECONCILIATION_PENDING (returns None) when
        referenced entities are missing, otherwise commits. From
        RECONCILIATION_PENDING: commits once every entity is resolved.

        Raises:
            ReconciliationBlockedError: unresolved entities remain
        """
        self._require("confirm", SessionStage.PREVIEW, SessionStage.RECONCILIATION_PENDING)
        if dataset_name is not None:
            self.dataset_name = dataset_name
        if set_reference is not None:
            self.set_reference = set_reference

        if self.stage == SessionStage.PREVIEW:
            reference = self.kind.spec.reference
            if reference is not None:
                catalog = CatalogIndex.load(self.store, reference.entity_kind)
                self.unmatched = find_unmatched(self.records, catalog, reference)
                if self.unmatched:
                    self.stage = SessionStage.RECONCILIATION_PENDING
                    logger.warning(
                        f"{len(self.unmatched)} unmatched {reference.entity_kind.value} codes: "
                        f"{', '.join(u.external_code for u in self.unmatched)}"
                    )
                    return None
            return self._commit()

        outcome = resolve(self.unmatched, self.resolutions)
        if outcome.blocked:
            raise ReconciliationBlockedError(outcome.missing)
        return self._commit()

    def retry_commit(self) -> CommitResult:
        self._require("retry the commit", SessionStage.FAILED)
        return self._commit()

    def _commit(self) -> CommitResult:
        self.stage = SessionStage.COMMITTING
        started = time.perf_counter()
        name = self.dataset_name or PurePath(self.file_name).stem or None
        try:
            dataset = self._executor.commit(
                self.records,
                self.resolutions,
                kind=self.kind,
                dataset_name=name,
                set_reference=self.set_reference,
                unmatched=self.unmatched,
            )
        except CommitError as e:
            self.stage = SessionStage.FAILED
            self.last_error = str(e)
            self.result = CommitResult(
                status=CommitStatus.FAILED,
                created_entities=list(self._executor.created_entities),
                excluded_rows=sum(1 for r in self.records if not r.is_eligible),
                reason=str(e),
                elapsed_seconds=time.perf_counter() - started,
            )
            self._record_error(type(e).__name__.upper(), str(e))
            logger.error(f"commit: {e}")
            return self.result

        self.stage = SessionStage.COMMITTED
        self.last_error = None
        self.result = CommitResult(
            status=CommitStatus.COMMITTED,
            dataset=dataset,
            committed_rows=dataset.row_count,
            excluded_rows=len(self.records) - dataset.row_count,
            created_entities=list(self._executor.created_entities),
            elapsed_seconds=time.perf_counter() - started,
        )
        logger.info(f"committed dataset={dataset.id} name={dataset.name} rows={dataset.row_count}")
        self.close()
        return self.result

    def cancel(self, reason: str | None = None) -> CommitResult:
        """Discard the session. Nothing is written to the store."""
        if self.stage in TERMINAL_STAGES or self.stage == SessionStage.COMMITTING:
            raise SessionStateError(f"cannot cancel in stage '{self.stage.value}'")
        unresolved: tuple[str, ...] = ()
        if self.stage == SessionStage.RECONCILIATION_PENDING:
            reason = CANCELLED_UNMATCHED_REASON
            unresolved = self.pending_codes()
        self.result = CommitResult(
            status=CommitStatus.CANCELLED,
            excluded_rows=len(self.records),
            created_entities=list(self._executor.created_entities),
            reason=reason or CANCELLED_REASON,
            unresolved_codes=unresolved,
        )
        self._record_error("CANCELLED", self.result.reason)
        logger.warning(f"session cancelled: {self.result.reason}")
        self.stage = SessionStage.CANCELLED
        self.close()
        self.records = []
        self.tabular = None
        return self.result

    def close(self) -> None:
        """Write the error log (row errors + session errors) once."""
        if self._flushed:
            return
        self._flushed = True
        for r in self.records:
            if r.has_error:
                self._record_error("VALIDATION_ERROR", r.error_message, row=r.row_number)
        path = self.error_log.flush()
        if path is not None and path.exists():
            logger.info(f"error log: {path}")
