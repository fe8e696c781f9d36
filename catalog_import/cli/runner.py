from __future__ import annotations

import argparse
import dataclasses
import os
import sys
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config
from ..db.memory_store import InMemoryCatalogStore
from ..db.postgres_store import PostgresCatalogStore
from ..db.store import CatalogStore
from ..errors import CatalogImportError
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.config_models import DatabaseConfig, ImportConfig
from ..models.import_kind import CanonicalField, ImportKind
from ..models.session_state import CommitStatus, PreviewStatistics, SessionStage
from ..models.tabular import DetectedEncoding, RawFile
from ..services.column_mapper import auto_map
from ..services.reconciliation import ResolutionError
from ..services.session import ImportSession
from ..services.summary import render_summary_line
from ..tabular.errors import ParseError
from ..tabular.export import export_dataset
from ..tabular.normalizer import normalize
from ..tabular.reader import read_tabular

"""CLI entrypoint.

Runs one import session non-interactively:
- load .env (overriding) and the YAML config
- parse the file, auto-map, apply --map overrides, build the preview
- confirm; when referenced entities are missing apply --resolve /
  --create-missing and confirm again
- print the SUMMARY line and exit with the contract exit code

Store: PostgreSQL when reachable, otherwise (or with DISABLE_DB_CONNECT=1)
the in-memory store ("mock mode").
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_BLOCKED = 3

DEFAULT_CONFIG_PATH = Path("config/import.yml")


def _resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string resolution order.

    1. DATABASE_URL / PGDSN (after .env was loaded with override)
    2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the config `database` section for anything still missing
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ImportConfig) -> Iterator[Any]:  # pragma: no cover (needs a server)
    """psycopg2 cursor; commits on normal exit, rolls back on exception."""
    conn = psycopg2.connect(_resolve_dsn(cfg.database))
    try:
        with conn:
            with conn.cursor() as cur:
                yield cur
    finally:
        conn.close()


def _open_store(cfg: ImportConfig, stack: ExitStack, logger) -> tuple[CatalogStore, str]:
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        return InMemoryCatalogStore(), "mock"
    try:
        cur = stack.enter_context(_db_connection(cfg))
    except psycopg2.OperationalError as e:
        logger.info(f"DB connection failed -> fallback to mock mode: {e}")
        return InMemoryCatalogStore(), "mock"
    store = PostgresCatalogStore(cur)
    store.ensure_schema()
    return store, "live"


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="catalog-import",
        description="Import products, materials or sales from CSV/TXT/XLSX/XLS files into the catalog",
    )
    p.add_argument("file", help="File to import (.csv, .txt, .xlsx, .xls)")
    p.add_argument("--kind", required=True, choices=[k.value for k in ImportKind], help="Import kind")
    p.add_argument("--config", help=f"YAML config file (default: {DEFAULT_CONFIG_PATH} when present)")
    p.add_argument("--delimiter", choices=[",", ";", "tab"], help="Delimiter for .csv/.txt files")
    p.add_argument("--no-header", action="store_true", help="First row is data, not headers")
    p.add_argument("--encoding", help="Force the text encoding (UTF-8, windows-1256, ISO-8859-1, ...)")
    p.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="FIELD=COLUMN",
        help="Map a field to a column (header text or 1-based number; empty to unset)",
    )
    p.add_argument(
        "--resolve",
        action="append",
        default=[],
        metavar="CODE=ENTITY_ID",
        help="Map an unmatched code to an existing catalog entity",
    )
    p.add_argument("--create-missing", action="store_true", help="Create every unmatched entity")
    p.add_argument("--auto-generate-code", action="store_true", help="Generate missing product/material codes")
    p.add_argument("--dataset-name", help="Name of the created dataset (default: file name)")
    p.add_argument("--set-reference", action="store_true", help="Mark the created dataset as reference dataset")
    p.add_argument("--export", metavar="PATH", help="Write the committed dataset to an .xlsx file")
    p.add_argument("--dry-run", action="store_true", help="Stop after the preview; write nothing")
    p.add_argument("--inspect-data", action="store_true", help="Print headers, auto-map and first rows then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _split_pair(text: str, option: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"{option} expects KEY=VALUE, got '{text}'")
    return key.strip(), value.strip()


def _column_index(headers: list[str], column: str) -> int | None:
    if column == "":
        return None
    if column.isdigit():
        idx = int(column) - 1
        if not 0 <= idx < len(headers):
            raise ValueError(f"column {column} out of range (1..{len(headers)})")
        return idx
    key = normalize(column).casefold()
    for i, h in enumerate(headers):
        if h.casefold() == key:
            return i
    raise ValueError(f"no column named '{column}' (columns: {', '.join(headers)})")


def _parse_overrides(kind: ImportKind, headers: list[str], pairs: list[str]) -> dict[CanonicalField, int | None]:
    overrides: dict[CanonicalField, int | None] = {}
    for pair in pairs:
        name, column = _split_pair(pair, "--map")
        try:
            f = CanonicalField(name)
        except ValueError:
            f = None
        if f is None or f not in kind.fields:
            raise ValueError(f"unknown {kind.value} field '{name}' (fields: {', '.join(x.value for x in kind.fields)})")
        overrides[f] = _column_index(headers, column)
    return overrides


def _read_options(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if args.delimiter is not None:
        options["delimiter"] = "\t" if args.delimiter == "tab" else args.delimiter
    if args.no_header:
        options["has_header"] = False
    if args.encoding:
        options["encoding"] = DetectedEncoding.from_label(args.encoding)
    return options


def _inspect_data(raw: RawFile, kind: ImportKind, cfg: ImportConfig, options: dict[str, Any]) -> int:
    try:
        tabular = read_tabular(
            raw,
            delimiter=options.get("delimiter", cfg.delimiter),
            has_header=options.get("has_header", cfg.has_header),
            encoding=options.get("encoding"),
            sample_size=cfg.encoding_sample_bytes,
        )
    except ParseError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    mapping = auto_map(tabular.headers, cfg.synonyms_for(kind), kind)
    print(f"FILE: {raw.name} encoding={tabular.encoding.value if tabular.encoding else '-'} rows={len(tabular.rows)}")
    print(f"  columns={tabular.headers}")
    suggested = {f: (tabular.headers[i] if i is not None else None) for f, i in mapping.as_dict().items()}
    print(f"  auto_map={suggested}")
    for row in tabular.rows[:3]:
        print(f"    {row}")
    return EXIT_SUCCESS_ALL


def _run_session(
    session: ImportSession,
    raw: RawFile,
    args: argparse.Namespace,
    options: dict[str, Any],
    logger,
) -> tuple[int, str, PreviewStatistics | None]:
    """Drive the session; returns (exit code, summary status, preview statistics)."""
    if not session.upload(raw, **options):
        return EXIT_FATAL, "parse_error", None

    assert session.tabular is not None
    if args.map:
        session.set_columns(_parse_overrides(session.kind, session.tabular.headers, args.map))

    if not session.generate_preview():
        missing = ", ".join(f.value for f in session.missing_fields())
        logger.error(f"mapping: {session.message} (missing: {missing})")
        return EXIT_FATAL, "incomplete_mapping", None

    stats = session.statistics()
    for record in session.records:
        if record.has_error:
            logger.warning(f"row {record.row_number}: {record.error_message}")

    if args.dry_run:
        logger.info(f"dry run: {stats.eligible} of {stats.total} rows would be committed")
        return (EXIT_SUCCESS_ALL if stats.errors == 0 else EXIT_PARTIAL_FAILURE), "dry_run", stats

    if stats.eligible == 0:
        logger.warning("nothing to commit: every row has errors")
        session.cancel("nothing to commit")
        return EXIT_PARTIAL_FAILURE, "nothing_to_commit", stats

    result = session.confirm(dataset_name=args.dataset_name, set_reference=args.set_reference)
    if result is None:
        for pair in args.resolve:
            code, entity_id = _split_pair(pair, "--resolve")
            session.map_to_existing(code, entity_id)
        if args.create_missing:
            session.mark_all_create_new()
        stats = session.statistics()
        pending = session.pending_codes()
        if pending:
            logger.error(f"unresolved entities: {', '.join(pending)} (use --resolve CODE=ID or --create-missing)")
            session.cancel()
            return EXIT_BLOCKED, "blocked", stats
        result = session.confirm()
    assert result is not None

    if result.status == CommitStatus.FAILED:
        return EXIT_FATAL, "failed", stats
    if args.export and result.dataset is not None:
        path = export_dataset(result.dataset, Path(args.export))
        logger.info(f"exported dataset={result.dataset.id} to {path}")
    if result.excluded_rows > 0:
        return EXIT_PARTIAL_FAILURE, "partial", stats
    return EXIT_SUCCESS_ALL, "committed", stats


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # an explicit [] from tests must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug()

    _load_env_file(Path(".env"), override=True)

    try:
        if args.config:
            cfg = load_config(Path(args.config))
        elif DEFAULT_CONFIG_PATH.exists():
            cfg = load_config(DEFAULT_CONFIG_PATH)
        else:
            cfg = ImportConfig()
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.auto_generate_code:
        cfg = dataclasses.replace(cfg, auto_generate_code=True)

    kind = ImportKind(args.kind)
    path = Path(args.file)
    if not path.is_file():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL
    raw = RawFile.from_path(path)

    try:
        options = _read_options(args)
    except ValueError as e:
        logger.error(f"options: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(raw, kind, cfg, options)

    session: ImportSession | None = None
    stats: PreviewStatistics | None = None
    try:
        with ExitStack() as stack:
            store, mode = _open_store(cfg, stack, logger)
            logger.info(f"mode={mode} kind={kind.value} file={raw.name}")
            session = ImportSession(kind, store, cfg)
            code, status, stats = _run_session(session, raw, args, options, logger)
    except (CatalogImportError, ValueError) as e:
        if isinstance(e, ResolutionError) and session is not None and session.stage == SessionStage.RECONCILIATION_PENDING:
            session.cancel()
        logger.error(f"import: {e}")
        code, status = EXIT_FATAL, "error"
    finally:
        if session is not None:
            session.close()

    summary_line = render_summary_line(kind, raw.name, stats, session.result if session else None, status=status)
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(summary_line[len("SUMMARY "):])
    return code

