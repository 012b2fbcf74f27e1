"""
Extraction Utils Package

Provides the Universal Schema models, asset schemas and guarded engine
accessors.
"""

from .schemas import (
    ShapeType,
    Geometry,
    FillFormat,
    LineFormat,
    FontFormat,
    TextFrame,
    UniversalShape,
    UniversalSlide,
    UniversalPresentation,
)

from .asset_schemas import (
    AssetExtractionOptions,
    AssetMetadata,
    AssetResult,
    ExtractionResult,
    ExtractionStatus,
    PresentationAssetIndex,
    SlideRange,
    StorageReference,
)

from .accessors import (
    safe_get,
    safe_call,
    safe_list,
    safe_len,
    emu_to_points,
    points_to_emu,
)

from .colors import normalize_color

__all__ = [
    # Schemas
    "ShapeType",
    "Geometry",
    "FillFormat",
    "LineFormat",
    "FontFormat",
    "TextFrame",
    "UniversalShape",
    "UniversalSlide",
    "UniversalPresentation",
    # Asset schemas
    "AssetExtractionOptions",
    "AssetMetadata",
    "AssetResult",
    "ExtractionResult",
    "ExtractionStatus",
    "PresentationAssetIndex",
    "SlideRange",
    "StorageReference",
    # Accessors
    "safe_get",
    "safe_call",
    "safe_list",
    "safe_len",
    "emu_to_points",
    "points_to_emu",
    "normalize_color",
]
