"""
Embedded media lookup shared by the video and audio extractors.

A media picture references its bytes twice: ``a:videoFile``/``a:audioFile``
(``r:link``) and, in newer files, ``p14:media`` (``r:embed``). Either may
point at the embedded media part; linked (external) media carries no bytes.
"""

from typing import Any, List, Optional, Tuple

from assets.base import AssetExtractor, partname_ext, related_blob, walk_shapes
from extractors.shapes import media_kind
from utils.accessors import safe_get, xml_element, xpath
from utils.asset_schemas import AssetExtractionOptions, AssetResult

_NV_PR = "./*[local-name()='nvPicPr']/*[local-name()='nvPr']"


def media_relationship_ids(shape: Any, media_type: str) -> List[str]:
    element = xml_element(shape)
    ids = xpath(element, f"{_NV_PR}/*[local-name()='{media_type}File']/@*[local-name()='link']")
    ids += xpath(element, f"{_NV_PR}//*[local-name()='media']/@*[local-name()='embed']")
    return [str(r_id) for r_id in ids]


def media_blob(shape: Any, media_type: str) -> Optional[Tuple[bytes, Any]]:
    """(bytes, media part) of the first embedded media reference, None if only linked."""
    part = safe_get(shape, "part")
    for r_id in media_relationship_ids(shape, media_type):
        related = related_blob(part, r_id)
        if related is not None:
            return related
    return None


class MediaAssetExtractor(AssetExtractor):
    """Common traversal for media shapes of one kind."""

    media_type = "video"

    def extract_media_shapes(self, slide: Any, slide_index: int, options: AssetExtractionOptions) -> List[AssetResult]:
        assets = []
        for shape in walk_shapes(safe_get(slide, "shapes")):
            if media_kind(shape) != self.media_type:
                continue
            asset = self.try_shape(self.extract_media, shape, slide_index, options)
            if asset is not None:
                assets.append(asset)
        return assets

    def extract_media(self, shape: Any, slide_index: int, options: AssetExtractionOptions) -> Optional[AssetResult]:
        related = media_blob(shape, self.media_type)
        if related is None:
            return None
        data, part = related

        asset = self.build_asset(
            data,
            self.format_of(data, partname_ext(part)),
            self.media_type,
            slide_index,
            options,
            self.build_metadata(shape, slide_index, "shape-media", options),
            original_name=safe_get(shape, "name"),
        )
        asset.metadata.mime_type = safe_get(part, "content_type")
        return asset

    def format_of(self, data: bytes, fallback: Optional[str]) -> str:
        raise NotImplementedError
