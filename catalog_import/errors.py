from __future__ import annotations

"""Root exception for the catalog import pipeline.

Concrete errors live next to the code that raises them (parser, config loader,
session, commit executor, store) and all derive from CatalogImportError so the
CLI can report any pipeline failure with a single except clause.
"""

__all__ = [
    "CatalogImportError",
]


class CatalogImportError(Exception):
    """Base class for all errors raised by catalog_import."""
