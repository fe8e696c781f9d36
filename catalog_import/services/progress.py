from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

One bar per commit, counting written rows. In non-TTY environments (CI, piped
output) the bar is disabled so logs are not filled with control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Row progress for a commit.

    Usage::

        with ProgressTracker(len(rows), description="Committing product") as progress:
            for row in rows:
                ...
                progress.advance()
    """

    def __init__(self, total: int, *, description: str = "Committing", unit: str = "row") -> None:
        self.total = total
        self.description = description
        self.done = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total,
                desc=description,
                unit=unit,
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, count: int = 1) -> None:
        self.done += count
        if self.enabled and self.pbar is not None:
            self.pbar.update(count)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
