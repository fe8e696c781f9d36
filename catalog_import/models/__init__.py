"""Domain models for the catalog bulk import pipeline.

This package contains the domain model classes used throughout the pipeline:
import kinds and canonical fields, parsed tabular data, column mappings,
candidate records, reconciliation models, datasets and session results.
"""

from .candidate_record import CandidateRecord
from .column_mapping import ColumnMapping
from .config_models import DatabaseConfig, ImportConfig
from .dataset import CatalogEntity, Dataset, DatasetSummary
from .error_record import ErrorRecord
from .import_kind import CanonicalField, EntityKind, ImportKind
from .reconciliation import Resolution, ResolutionAction, UnmatchedEntity
from .session_state import CommitResult, CommitStatus, PreviewStatistics, SessionStage
from .tabular import DetectedEncoding, RawFile, TabularData

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Import kinds
    "CanonicalField",
    "EntityKind",
    "ImportKind",
    # Pipeline models
    "CandidateRecord",
    "ColumnMapping",
    "DetectedEncoding",
    "RawFile",
    "TabularData",
    "Resolution",
    "ResolutionAction",
    "UnmatchedEntity",
    # Results / persistence
    "CatalogEntity",
    "CommitResult",
    "CommitStatus",
    "Dataset",
    "DatasetSummary",
    "ErrorRecord",
    "PreviewStatistics",
    "SessionStage",
]
