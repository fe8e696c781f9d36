"""Catalog bulk import and reconciliation pipeline.

Reads product, material and sales files (CSV/TXT/XLSX/XLS) of unknown encoding
and layout, maps and validates them against the catalog, reconciles missing
referenced entities and commits the approved rows as a dataset.
"""

__version__ = "0.1.0"
