"""Command line interface (catalog-import / python -m catalog_import.cli)."""

from .runner import main

__all__ = [
    "main",
]
