from typing import Any, List, Optional

from assets.media import MediaAssetExtractor
from assets.signatures import detect_video_format
from utils.asset_schemas import AssetExtractionOptions, AssetResult


class VideoAssetExtractor(MediaAssetExtractor):
    """Embedded movies. Linked videos have no bytes in the package and are skipped."""

    asset_type = "video"
    media_type = "video"

    def extract_from_slide(self, slide: Any, slide_index: int, options: AssetExtractionOptions) -> List[AssetResult]:
        return self.extract_media_shapes(slide, slide_index, options)

    def format_of(self, data: bytes, fallback: Optional[str]) -> str:
        return detect_video_format(data, fallback=fallback)
