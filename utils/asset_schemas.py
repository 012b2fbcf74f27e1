"""
Asset Schemas

Pydantic models for extracted binary assets, their metadata, extraction
options and the aggregated extraction result.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from utils.schemas import Position

AssetType = Literal["image", "video", "audio", "document", "shape", "chart"]
ReturnFormat = Literal["urls", "base64", "firebase-urls", "metadata-only"]

ASSET_TYPES: tuple = ("image", "video", "audio", "document", "shape", "chart")
EXTRACTABLE_ASSET_TYPES: tuple = ("image", "video", "audio", "document")
QUALITY_LEVELS: tuple = ("low", "medium", "high", "lossless")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ExtractionStatus(str, Enum):
    """Run state of one extraction."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class AssetDimensions(BaseModel):
    width: float = 0.0
    height: float = 0.0
    aspect_ratio: float = 0.0


class AssetTransform(BaseModel):
    position: Position = Field(default_factory=Position)
    dimensions: AssetDimensions = Field(default_factory=AssetDimensions)
    rotation: Optional[float] = None
    scale_x: Optional[float] = None
    scale_y: Optional[float] = None


class AssetStyle(BaseModel):
    opacity: Optional[float] = None
    effects: List[str] = Field(default_factory=list)
    filters: Dict[str, Any] = Field(default_factory=dict)


class AssetQuality(BaseModel):
    resolution: Optional[float] = Field(default=None, description="Effective resolution in DPI")
    bitrate: Optional[int] = None
    color_depth: Optional[int] = None
    compression: Optional[str] = None
    quality: Optional[str] = Field(default=None, description="One of low, medium, high, lossless")


class AssetMetadata(BaseModel):
    """Per-asset metadata. Field names double as the flattened repository keys."""
    extracted_at: str = Field(default_factory=utc_now_iso)
    extraction_method: str = "unknown"
    has_data: bool = False
    mime_type: Optional[str] = None

    transform: Optional[AssetTransform] = None
    style: Optional[AssetStyle] = None
    quality: Optional[AssetQuality] = None

    # media
    duration: Optional[float] = None
    frame_rate: Optional[float] = None
    channels: Optional[int] = None
    sample_rate: Optional[int] = None

    # documents
    pages: Optional[int] = None
    word_count: Optional[int] = None

    # engine hints
    shape_id: Optional[str] = None
    shape_type: Optional[str] = None
    slide_id: Optional[str] = None
    parent_group_id: Optional[str] = None

    linked_assets: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)

    processing_time_ms: Optional[int] = None
    error_count: int = 0
    warnings: List[str] = Field(default_factory=list)

    custom_properties: Dict[str, Any] = Field(default_factory=dict)


class AssetThumbnail(BaseModel):
    url: Optional[str] = None
    base64: Optional[str] = None
    size: Optional[int] = None


class AssetResult(BaseModel):
    """One extracted asset. ``data`` is transient and never serialized."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: AssetType
    format: str
    filename: str
    original_name: Optional[str] = None
    size: int = 0
    presentation_id: Optional[str] = None
    slide_index: int = Field(default=0, description="0-based index of the owning slide")
    data: Optional[bytes] = Field(default=None, exclude=True, repr=False)
    base64: Optional[str] = Field(default=None, repr=False)
    storage_url: Optional[str] = None
    storage_path: Optional[str] = None
    download_url: Optional[str] = None
    thumbnail: Optional[AssetThumbnail] = None
    metadata: AssetMetadata = Field(default_factory=AssetMetadata)


class SlideRange(BaseModel):
    """Inclusive 0-based slide range."""
    start: int = Field(default=0, ge=0)
    end: Optional[int] = Field(default=None, ge=0)

    def contains(self, index: int) -> bool:
        if index < self.start:
            return False
        return self.end is None or index <= self.end


class AssetExtractionOptions(BaseModel):
    asset_types: List[str] = Field(default_factory=lambda: ["all"], description="Asset types or 'all'")
    return_format: ReturnFormat = "urls"
    extract_thumbnails: bool = False
    save_to_storage: bool = True
    generate_download_urls: bool = False
    include_metadata: bool = True
    include_transforms: bool = True
    include_styles: bool = True
    slide_range: Optional[SlideRange] = None
    presentation_id: Optional[str] = None
    enable_parallel_processing: bool = True

    def resolved_asset_types(self) -> List[str]:
        """Requested types with 'all' expanded, order preserved, duplicates dropped."""
        resolved: List[str] = []
        for asset_type in self.asset_types:
            expanded = EXTRACTABLE_ASSET_TYPES if asset_type == "all" else (asset_type,)
            for item in expanded:
                if item not in resolved:
                    resolved.append(item)
        return resolved

    def includes_slide(self, index: int) -> bool:
        return self.slide_range is None or self.slide_range.contains(index)


class ExtractionContext(BaseModel):
    presentation_id: str
    extraction_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    options: AssetExtractionOptions = Field(default_factory=AssetExtractionOptions)


class ExtractionResult(BaseModel):
    success: bool = False
    assets: List[AssetResult] = Field(default_factory=list)
    total_assets: int = 0
    processing_time_ms: int = 0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    status: ExtractionStatus = ExtractionStatus.IDLE
    context: Optional[ExtractionContext] = None

    def assets_by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for asset in self.assets:
            counts[asset.type] = counts.get(asset.type, 0) + 1
        return counts


class IndexedAsset(BaseModel):
    asset_id: str
    type: str
    format: str
    size: int = 0
    slide_index: int = 0
    added_at: str = Field(default_factory=utc_now_iso)


class PresentationAssetIndex(BaseModel):
    presentation_id: str
    assets: List[IndexedAsset] = Field(default_factory=list)
    total_assets: int = 0
    assets_by_type: Dict[str, int] = Field(default_factory=dict)
    total_size: int = 0
    last_updated: Optional[str] = None


class AssetStatistics(BaseModel):
    total_assets: int = 0
    assets_by_type: Dict[str, int] = Field(default_factory=dict)
    assets_by_format: Dict[str, int] = Field(default_factory=dict)
    total_size: int = 0
    average_size: float = 0.0


class StorageReference(BaseModel):
    """Where an uploaded asset lives."""
    storage_url: str
    storage_path: str
    download_url: Optional[str] = None


class BulkDeleteResult(BaseModel):
    deleted_count: int = 0
    failed_deletes: List[Dict[str, str]] = Field(default_factory=list)
