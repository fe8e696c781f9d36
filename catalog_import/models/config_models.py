from __future__ import annotations

from dataclasses import dataclass, field

from .import_kind import DEFAULT_FIELD_SYNONYMS, CanonicalField, ImportKind

"""Config dataclasses for the catalog import pipeline.

The loader in catalog_import/config/loader.py turns the validated YAML document
into these objects; everything downstream only sees the typed form.
"""

__all__ = [
    "DatabaseConfig",
    "ImportConfig",
]

SUPPORTED_DELIMITERS = (",", ";", "\t")


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for import sessions.

    Every value has a default so a session can run without a config file.
    """
    delimiter: str = ","
    has_header: bool = True
    encoding: str = "auto"  # "auto" or a DetectedEncoding label
    encoding_sample_bytes: int = 1000
    duplicate_match: str = "exact"  # exact | substring
    auto_generate_code: bool = False
    code_prefixes: dict[str, str] = field(default_factory=lambda: {"product": "P", "material": "M"})
    field_synonyms: dict[ImportKind, dict[CanonicalField, tuple[str, ...]]] = field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_FIELD_SYNONYMS.items()}
    )
    error_log_dir: str | None = "./logs"
    timezone: str = "UTC"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def synonyms_for(self, kind: ImportKind) -> dict[CanonicalField, tuple[str, ...]]:
        return self.field_synonyms.get(kind, DEFAULT_FIELD_SYNONYMS[kind])

    def code_prefix(self, kind: ImportKind) -> str:
        return self.code_prefixes.get(kind.value, kind.value[:1].upper())
