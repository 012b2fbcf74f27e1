"""
Asset extractor contract, shared traversal helpers and the type registry.

An extractor only locates raw bytes and identity for its asset type.
Enrichment, upload and persistence happen downstream in the orchestrator.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Tuple

from core.config import MAX_GROUP_DEPTH
from core.exceptions import ConfigurationError
from core.metadata import AssetMetadataService, get_metadata_service
from utils.accessors import local_name, safe_call, safe_get, safe_list, xml_element
from utils.asset_schemas import AssetExtractionOptions, AssetMetadata, AssetResult

logger = logging.getLogger(__name__)


def iter_slides(document: Any, options: AssetExtractionOptions) -> Iterator[Tuple[int, Any]]:
    """(index, slide) pairs inside the requested slide range."""
    for index, slide in enumerate(safe_list(document, "slides")):
        if options.includes_slide(index):
            yield index, slide


def walk_shapes(shapes: Any, depth: int = 0, max_depth: int = MAX_GROUP_DEPTH) -> Iterator[Any]:
    """Every shape in a collection, group members included, in document order."""
    for shape in safe_list(shapes):
        yield shape
        if local_name(xml_element(shape)) == "grpSp":
            if depth >= max_depth:
                logger.warning(f"Group '{safe_get(shape, 'name', '')}' nested deeper than {max_depth}, children skipped")
                continue
            yield from walk_shapes(safe_get(shape, "shapes"), depth + 1, max_depth)


def related_blob(part: Any, r_id: Any) -> Optional[Tuple[bytes, Any]]:
    """(blob, target part) for an internal relationship id, None when missing or external."""
    relationship = safe_call(getattr(safe_get(part, "rels"), "get", None), str(r_id))
    if relationship is None or safe_get(relationship, "is_external") is True:
        return None
    target = safe_get(relationship, "target_part")
    blob = safe_get(target, "blob")
    if not blob:
        return None
    return blob, target


def partname_ext(part: Any) -> Optional[str]:
    ext = safe_get(part, "partname.ext")
    return str(ext).lower() if ext else None


class AssetExtractor(ABC):
    """
    Extracts every asset of one type from a document.

    Subclasses implement extract_from_slide(); the engine is read on a worker
    thread so callers can bound the run with asyncio timeouts.
    """

    asset_type: str = ""

    def __init__(self, metadata_service: Optional[AssetMetadataService] = None):
        self.metadata_service = metadata_service or get_metadata_service()

    async def extract_assets(self, document: Any, options: AssetExtractionOptions) -> List[AssetResult]:
        return await asyncio.to_thread(self.extract_sync, document, options)

    def extract_sync(self, document: Any, options: AssetExtractionOptions) -> List[AssetResult]:
        """Blocking traversal of every slide in range."""
        assets: List[AssetResult] = []
        for index, slide in iter_slides(document, options):
            try:
                assets.extend(self.extract_from_slide(slide, index, options))
            except Exception as e:
                logger.error(f"Error processing slide {index} in {self.asset_type} extraction: {e}")
        logger.info(f"{self.asset_type.capitalize()} extraction found {len(assets)} asset(s)")
        return assets

    @abstractmethod
    def extract_from_slide(self, slide: Any, slide_index: int, options: AssetExtractionOptions) -> List[AssetResult]:
        ...

    def build_metadata(
        self,
        shape: Any,
        slide_index: int,
        method: str,
        options: AssetExtractionOptions,
    ) -> AssetMetadata:
        if not options.include_metadata:
            return AssetMetadata(extraction_method=method, has_data=True, slide_id=str(slide_index))
        return self.metadata_service.generate_comprehensive_metadata(
            shape,
            slide_index,
            method,
            include_transforms=options.include_transforms,
            include_styles=options.include_styles,
        )

    def build_asset(
        self,
        data: bytes,
        fmt: str,
        prefix: str,
        slide_index: int,
        options: AssetExtractionOptions,
        metadata: AssetMetadata,
        original_name: Optional[str] = None,
    ) -> AssetResult:
        asset_id = str(uuid.uuid4())
        filename = f"{prefix}-slide-{slide_index}-{asset_id}.{fmt}"
        return AssetResult(
            id=asset_id,
            type=self.asset_type,
            format=fmt,
            filename=filename,
            original_name=original_name or filename,
            size=len(data),
            presentation_id=options.presentation_id,
            slide_index=slide_index,
            data=data,
            metadata=metadata,
        )

    def try_shape(self, func, shape: Any, slide_index: int, options: AssetExtractionOptions) -> Optional[AssetResult]:
        """Run one per-shape extraction; failures are logged and skipped."""
        try:
            return func(shape, slide_index, options)
        except Exception as e:
            logger.warning(
                f"Failed to extract {self.asset_type} from shape '{safe_get(shape, 'name', '')}' "
                f"on slide {slide_index}: {e}"
            )
            return None


class AssetExtractorRegistry:
    """Asset type -> extractor."""

    def __init__(self, extractors: Optional[Dict[str, AssetExtractor]] = None):
        self._extractors: Dict[str, AssetExtractor] = dict(extractors or {})

    def register(self, extractor: AssetExtractor, asset_type: Optional[str] = None) -> None:
        key = asset_type or extractor.asset_type
        if not key:
            raise ConfigurationError(f"{type(extractor).__name__} has no asset type")
        self._extractors[key] = extractor

    def get(self, asset_type: str) -> Optional[AssetExtractor]:
        return self._extractors.get(asset_type)

    def supported_types(self) -> List[str]:
        return list(self._extractors.keys())

    def __len__(self) -> int:
        return len(self._extractors)

    def __contains__(self, asset_type: str) -> bool:
        return asset_type in self._extractors
