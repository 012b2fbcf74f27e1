from typing import Any, List, Optional

from assets.base import AssetExtractor, walk_shapes
from assets.signatures import detect_document_format, mime_type_for
from extractors.shapes import detect_shape_type
from utils.accessors import safe_get
from utils.asset_schemas import AssetExtractionOptions, AssetResult
from utils.schemas import ShapeType


class DocumentAssetExtractor(AssetExtractor):
    """Embedded OLE objects (Word, Excel, PowerPoint, PDF and other packages)."""

    asset_type = "document"

    def extract_from_slide(self, slide: Any, slide_index: int, options: AssetExtractionOptions) -> List[AssetResult]:
        assets = []
        for shape in walk_shapes(safe_get(slide, "shapes")):
            if detect_shape_type(shape) != ShapeType.OLE_OBJECT:
                continue
            asset = self.try_shape(self.extract_ole_object, shape, slide_index, options)
            if asset is not None:
                assets.append(asset)
        return assets

    def extract_ole_object(self, shape: Any, slide_index: int, options: AssetExtractionOptions) -> Optional[AssetResult]:
        ole_format = shape.ole_format
        data = ole_format.blob
        if not data:
            return None

        prog_id = safe_get(ole_format, "prog_id")
        fmt = detect_document_format(data, prog_id)
        metadata = self.build_metadata(shape, slide_index, "embedded-ole", options)
        metadata.mime_type = mime_type_for(fmt)
        if prog_id:
            metadata.custom_properties["progId"] = prog_id

        return self.build_asset(
            data,
            fmt,
            "document-ole",
            slide_index,
            options,
            metadata,
            original_name=safe_get(shape, "name"),
        )
