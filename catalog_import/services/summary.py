from __future__ import annotations

from decimal import Decimal

from ..models.import_kind import ImportKind
from ..models.session_state import CommitResult, PreviewStatistics

"""SUMMARY line rendering for one import session.

Format:
SUMMARY kind={kind} file={file} rows={total} valid={valid} errors={errors}
committed={committed} created_entities={created} status={status} elapsed_sec={elapsed}

Sales imports append the preview totals:
products={distinct codes} quantity={total} revenue={total} unmatched={codes}
"""

__all__ = [
    "format_amount",
    "format_seconds",
    "render_summary_line",
]


def format_seconds(seconds: float) -> str:
    """Render elapsed seconds without scientific notation or a trailing .0."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def format_amount(value: Decimal) -> str:
    """Plain decimal text, no exponent and no trailing fraction zeros."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def render_summary_line(
    kind: ImportKind,
    file_name: str,
    stats: PreviewStatistics | None,
    result: CommitResult | None,
    *,
    status: str | None = None,
) -> str:
    """Render the SUMMARY line.

    `stats` is None when the file never got past parsing; `result` is None when
    the session stopped before a terminal result (blocked, dry run). `status`
    overrides the status taken from `result`.

    >>> render_summary_line(ImportKind.PRODUCT, "p.csv", None, None, status="parse_error")
    'SUMMARY kind=product file=p.csv rows=0 valid=0 errors=0 committed=0 created_entities=0 status=parse_error elapsed_sec=0'
    """
    total = stats.total if stats else 0
    valid = stats.valid if stats else 0
    errors = stats.errors if stats else 0
    committed = result.committed_rows if result else 0
    created = len(result.created_entities) if result else 0
    elapsed = result.elapsed_seconds if result else 0.0
    if status is None:
        status = result.status.value if result else "pending"
    name = file_name.replace(" ", "_")
    line = (
        f"SUMMARY kind={kind.value} "
        f"file={name} "
        f"rows={total} "
        f"valid={valid} "
        f"errors={errors} "
        f"committed={committed} "
        f"created_entities={created} "
        f"status={status} "
        f"elapsed_sec={format_seconds(elapsed)}"
    )
    if kind == ImportKind.SALE:
        line += (
            f" products={stats.distinct_codes if stats else 0}"
            f" quantity={format_amount(stats.total_quantity if stats else Decimal(0))}"
            f" revenue={format_amount(stats.total_revenue if stats else Decimal(0))}"
            f" unmatched={stats.unmatched if stats else 0}"
        )
    return line
