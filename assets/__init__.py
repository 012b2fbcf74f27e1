"""
Asset Extractors Package

Type-specific extractors for embedded binaries and the registry the
orchestrator dispatches through.
"""

from typing import Optional

from core.metadata import AssetMetadataService

from .audio import AudioAssetExtractor
from .base import AssetExtractor, AssetExtractorRegistry
from .document import DocumentAssetExtractor
from .image import ImageAssetExtractor
from .video import VideoAssetExtractor


def create_default_registry(metadata_service: Optional[AssetMetadataService] = None) -> AssetExtractorRegistry:
    """Registry with the image, video, audio and document extractors."""
    registry = AssetExtractorRegistry()
    for extractor_class in (ImageAssetExtractor, VideoAssetExtractor, AudioAssetExtractor, DocumentAssetExtractor):
        registry.register(extractor_class(metadata_service))
    return registry


__all__ = [
    "AssetExtractor",
    "AssetExtractorRegistry",
    "ImageAssetExtractor",
    "VideoAssetExtractor",
    "AudioAssetExtractor",
    "DocumentAssetExtractor",
    "create_default_registry",
]
