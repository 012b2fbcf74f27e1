"""
Extraction error taxonomy.

Only ConfigurationError (and SchemaValidationError when validation was
requested) escape an extraction run. Everything else is caught at the lowest
layer and reported as warnings.
"""

from typing import List, Optional


class ExtractionError(Exception):
    """Base class for extraction core errors."""


class ConfigurationError(ExtractionError):
    """Fatal setup problem: no document handle, no extractors, uninitialized backend."""


class SchemaValidationError(ExtractionError):
    """Opt-in validation found invariant violations."""

    def __init__(self, message: str, violations: Optional[List[str]] = None):
        super().__init__(message)
        self.violations = violations or []


class ReconstructionError(ExtractionError):
    """A slide could not be rebuilt in the destination document."""


class StorageError(ExtractionError):
    """Object storage upload or delete failed."""


class RepositoryError(ExtractionError):
    """A primary metadata read or write failed."""
