from __future__ import annotations

import json

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

from catalog_import.config.loader import SCHEMA_PATH

"""Config schema contract test: the packaged import_schema.json."""


@pytest.fixture()
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_schema_is_a_valid_draft_2020_12_schema(schema):
    jsonschema.Draft202012Validator.check_schema(schema)


def test_config_schema_valid_example(schema, sample_config_yaml):
    jsonschema.validate(yaml.safe_load(sample_config_yaml), schema)


def test_config_schema_full_example(schema):
    config = {
        "delimiter": "tab",
        "has_header": False,
        "encoding": "windows-1256",
        "encoding_sample_bytes": 4096,
        "duplicate_match": "substring",
        "auto_generate_code": True,
        "code_prefixes": {"product": "PRD", "material": "MAT"},
        "field_synonyms": {
            "product": {"name": ["نام کالا"]},
            "material": {"unit": ["uom"]},
            "sale": {"quantity": ["qty sold"]},
        },
        "error_log_dir": None,
        "timezone": "Asia/Tehran",
        "database": {"dsn": "postgresql://app@localhost/catalog"},
    }
    jsonschema.validate(config, schema)


@pytest.mark.parametrize(
    "config",
    [
        {"source_directory": "./data"},
        {"delimiter": "|"},
        {"encoding": "auto-detect"},
        {"database": {"port": "5432"}},
        {"field_synonyms": {"sale": {"date": [""]}}},
    ],
)
def test_config_schema_rejects(schema, config):
    with pytest.raises(ValidationError):
        jsonschema.validate(config, schema)
