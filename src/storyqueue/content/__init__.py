"""Authored content: events, arcs and the catalog that serves them."""

from .catalog import (
    DEFAULT_CONTENT_PATH,
    CatalogError,
    CatalogIssue,
    ContentCatalog,
    Severity,
)

__all__ = [
    "DEFAULT_CONTENT_PATH",
    "CatalogError",
    "CatalogIssue",
    "ContentCatalog",
    "Severity",
]
