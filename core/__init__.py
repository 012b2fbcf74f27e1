"""
Extraction Core Module

Errors, settings and the document loader shared by every service.
"""

from .config import ExtractionSettings, get_settings
from .exceptions import (
    ConfigurationError,
    ExtractionError,
    ReconstructionError,
    RepositoryError,
    SchemaValidationError,
    StorageError,
)
from .loader import PresentationLoader

__all__ = [
    "ExtractionSettings",
    "get_settings",
    "ExtractionError",
    "ConfigurationError",
    "SchemaValidationError",
    "ReconstructionError",
    "StorageError",
    "RepositoryError",
    "PresentationLoader",
]
