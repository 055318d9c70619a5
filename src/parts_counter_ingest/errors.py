"""Exception hierarchy for the ingestion service.

Only ConfigurationError is fatal. Every other kind is scoped to a single
file: the pipeline catches it, routes the file to the error folder and moves
on to the next one.
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for all ingestion errors."""


class ConfigurationError(IngestionError):
    """Settings are missing, malformed, or point at directories that don't exist."""


class ValidationError(IngestionError):
    """A required column is missing or blank."""


class FormatError(IngestionError):
    """A datetime cell does not match the expected layout."""


class ResolverError(IngestionError):
    """The machine id could not be derived from the file name."""


class GridReadError(IngestionError):
    """The workbook could not be opened or has no usable worksheet."""


class StoreError(IngestionError):
    """A database write failed."""


class FileSystemError(IngestionError):
    """A processed file could not be moved to its destination."""
