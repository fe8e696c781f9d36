# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from catalog_import.db.memory_store import InMemoryCatalogStore
from catalog_import.logging.init import reset_logging
from catalog_import.models.config_models import ImportConfig
from catalog_import.models.import_kind import EntityKind


@pytest.fixture(autouse=True)
def _clean_logging():
    # the stdout handler binds sys.stdout at setup time; rebuild it for capsys
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """delimiter: ","
has_header: true
encoding: auto
duplicate_match: exact
auto_generate_code: false
code_prefixes:
  product: P
  material: M
field_synonyms:
  product:
    price: [fee]
error_log_dir: ./logs
timezone: UTC
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def no_db(monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")


@pytest.fixture()
def config() -> ImportConfig:
    return ImportConfig(error_log_dir=None)


@pytest.fixture()
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture()
def seeded_store() -> InMemoryCatalogStore:
    s = InMemoryCatalogStore()
    s.create(EntityKind.DEPARTMENT, {"name": "Bakery"})
    s.create(EntityKind.UNIT, {"code": "kg", "name": "kg"})
    s.create(EntityKind.PRODUCT, {"code": "P1", "name": "Bread", "department": "Bakery", "price": 10})
    return s


@pytest.fixture()
def make_csv(tmp_path: Path):
    def _make(lines: list[str], *, name: str = "data.csv", encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_bytes(("\n".join(lines) + "\n").encode(encoding))
        return path
    return _make


@pytest.fixture()
def make_xlsx(tmp_path: Path):
    def _make(rows: list[list[object]], *, name: str = "data.xlsx") -> Path:
        path = tmp_path / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame(rows).to_excel(writer, sheet_name="Sheet1", header=False, index=False)
        return path
    return _make
