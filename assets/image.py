import logging
from typing import Any, List, Optional

from assets.base import AssetExtractor, partname_ext, related_blob, walk_shapes
from assets.signatures import detect_image_format
from extractors.shapes import detect_shape_type
from utils.accessors import safe_get, xml_element, xpath
from utils.asset_schemas import AssetExtractionOptions, AssetResult
from utils.schemas import ShapeType

logger = logging.getLogger(__name__)

_FILL_BLIP = (
    "./*[local-name()='spPr']/*[local-name()='blipFill']"
    "/*[local-name()='blip']/@*[local-name()='embed']"
)


class ImageAssetExtractor(AssetExtractor):
    """Pictures (including picture placeholders) and picture fills of autoshapes."""

    asset_type = "image"

    def extract_from_slide(self, slide: Any, slide_index: int, options: AssetExtractionOptions) -> List[AssetResult]:
        assets = []
        for shape in walk_shapes(safe_get(slide, "shapes")):
            if detect_shape_type(shape) == ShapeType.PICTURE:
                asset = self.try_shape(self.extract_picture, shape, slide_index, options)
            else:
                asset = self.try_shape(self.extract_fill_picture, shape, slide_index, options)
            if asset is not None:
                assets.append(asset)
        return assets

    def extract_picture(self, shape: Any, slide_index: int, options: AssetExtractionOptions) -> Optional[AssetResult]:
        image = shape.image
        data = image.blob
        if not data:
            return None

        asset = self.build_asset(
            data,
            detect_image_format(data, fallback=safe_get(image, "ext")),
            "image",
            slide_index,
            options,
            self.build_metadata(shape, slide_index, "shape-picture", options),
            original_name=safe_get(shape, "name"),
        )
        asset.metadata.mime_type = safe_get(image, "content_type")
        return asset

    def extract_fill_picture(self, shape: Any, slide_index: int, options: AssetExtractionOptions) -> Optional[AssetResult]:
        embeds = xpath(xml_element(shape), _FILL_BLIP)
        if not embeds:
            return None
        related = related_blob(safe_get(shape, "part"), embeds[0])
        if related is None:
            return None
        data, part = related

        asset = self.build_asset(
            data,
            detect_image_format(data, fallback=partname_ext(part)),
            "fill-image",
            slide_index,
            options,
            self.build_metadata(shape, slide_index, "shape-fill", options),
        )
        asset.metadata.mime_type = safe_get(part, "content_type")
        return asset
