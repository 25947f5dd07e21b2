"""Importer input adapters."""

from __future__ import annotations

from .csv_families import (
    CANONICAL_COLUMNS,
    REQUIRED_COLUMNS,
    CSVAdapterError,
    CSVHeaderError,
    FamilyCSVAdapter,
)

__all__ = [
    "CANONICAL_COLUMNS",
    "REQUIRED_COLUMNS",
    "CSVAdapterError",
    "CSVHeaderError",
    "FamilyCSVAdapter",
]
