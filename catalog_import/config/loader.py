from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import CatalogImportError
from ..models.config_models import DatabaseConfig, ImportConfig
from ..models.import_kind import DEFAULT_FIELD_SYNONYMS, CanonicalField, ImportKind

"""Config loader.

Responsibilities:
- Load the YAML config file (every key is optional)
- Validate it against the packaged import_schema.json
- Apply defaults and merge configured header synonyms in front of the
  built-in ones
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "load_config",
    "parse_config",
]

SCHEMA_PATH = Path(__file__).parent / "import_schema.json"


class ConfigError(CatalogImportError):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: the schema file is missing or invalid, or the config
            data violates it (unknown keys, wrong types, bad enum values)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        prefix = f"{location}: " if location else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def _merge_synonyms(raw: dict[str, Any]) -> dict[ImportKind, dict[CanonicalField, tuple[str, ...]]]:
    merged = {k: dict(v) for k, v in DEFAULT_FIELD_SYNONYMS.items()}
    for kind_name, fields in raw.items():
        kind = ImportKind(kind_name)
        for field_name, words in fields.items():
            try:
                f = CanonicalField(field_name)
            except ValueError as e:
                raise ConfigError(f"field_synonyms.{kind_name}: unknown field '{field_name}'") from e
            if f not in kind.fields:
                raise ConfigError(f"field_synonyms.{kind_name}: '{field_name}' is not a {kind_name} field")
            builtin = merged[kind].get(f, ())
            merged[kind][f] = tuple(words) + tuple(w for w in builtin if w not in words)
    return merged


def parse_config(data: dict[str, Any]) -> ImportConfig:
    """Build an ImportConfig from an already loaded mapping."""
    _validate_config_schema(data)

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    defaults = ImportConfig()
    delimiter = data.get("delimiter", defaults.delimiter)
    if delimiter == "tab":
        delimiter = "\t"
    return ImportConfig(
        delimiter=delimiter,
        has_header=data.get("has_header", defaults.has_header),
        encoding=data.get("encoding", defaults.encoding),
        encoding_sample_bytes=data.get("encoding_sample_bytes", defaults.encoding_sample_bytes),
        duplicate_match=data.get("duplicate_match", defaults.duplicate_match),
        auto_generate_code=data.get("auto_generate_code", defaults.auto_generate_code),
        code_prefixes={**defaults.code_prefixes, **data.get("code_prefixes", {})},
        field_synonyms=_merge_synonyms(data.get("field_synonyms", {})),
        error_log_dir=data.get("error_log_dir", defaults.error_log_dir),
        timezone=data.get("timezone", defaults.timezone),
        database=db,
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")
    return parse_config(data)
