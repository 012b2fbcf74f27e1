"""
Asset metadata generation, enrichment and validation.

generate_comprehensive_metadata() reads transform/style/quality hints from the
engine shape; enrich_metadata() adds byte-level analysis (MIME sniffing,
entropy based compression estimate, size bucket). Neither raises: failures are
reported through the metadata's warnings.
"""

import copy
import logging
import math
import time
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from extractors.shapes import detect_shape_type
from utils.accessors import emu_to_points, safe_call, safe_get, xml_element, xpath
from utils.asset_schemas import (
    QUALITY_LEVELS,
    AssetDimensions,
    AssetMetadata,
    AssetQuality,
    AssetStyle,
    AssetTransform,
    utc_now_iso,
)
from utils.schemas import Position

logger = logging.getLogger(__name__)

ENTROPY_SAMPLE_BYTES = 1024
SIGNATURE_BYTES = 16

KB = 1024
MB = 1024 * KB

# (upper bound exclusive, category)
SIZE_CATEGORIES = (
    (KB, "tiny"),
    (MB, "small"),
    (10 * MB, "medium"),
    (100 * MB, "large"),
)

_ALPHA = "./*[local-name()='spPr']/*[local-name()='solidFill']/*/*[local-name()='alpha']/@val"
_BLIP_ALPHA = ".//*[local-name()='blip']/*[local-name()='alphaModFix']/@amt"
_BLIP_STATE = ".//*[local-name()='blip']/@cstate"
_EFFECTS = "./*[local-name()='spPr']/*[local-name()='effectLst']/*"
_GROUP_ID = "./*[local-name()='nvGrpSpPr']/*[local-name()='cNvPr']/@id"

EFFECT_NAMES = {
    "outerShdw": "shadow",
    "innerShdw": "shadow",
    "prstShdw": "shadow",
    "glow": "glow",
    "reflection": "reflection",
    "blur": "blur",
    "softEdge": "softEdge",
}


def detect_mime_type(data: bytes) -> str:
    """Sniff a MIME type from the leading bytes."""
    signature = data[:12]
    if signature.startswith(b"\x89PNG"):
        return "image/png"
    if signature.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if signature.startswith(b"GIF8"):
        return "image/gif"
    if signature.startswith(b"BM"):
        return "image/bmp"
    if b"ftyp" in signature:
        return "video/mp4"
    if signature.startswith(b"RIFF"):
        if signature[8:12] == b"WAVE":
            return "audio/wav"
        if signature[8:12] == b"AVI ":
            return "video/x-msvideo"
        if signature[8:12] == b"WEBP":
            return "image/webp"
    if signature.startswith(b"ID3"):
        return "audio/mpeg"
    if signature.startswith(b"%PDF"):
        return "application/pdf"
    if signature.startswith(b"PK\x03\x04"):
        return "application/zip"
    return "application/octet-stream"


def byte_entropy(data: bytes) -> float:
    """Shannon entropy in bits per byte (0..8)."""
    if not data:
        return 0.0
    length = len(data)
    entropy = 0.0
    for count in Counter(data).values():
        probability = count / length
        entropy -= probability * math.log2(probability)
    return entropy


def estimate_compression(data: bytes) -> str:
    ratio = byte_entropy(data[:ENTROPY_SAMPLE_BYTES]) / 8
    if ratio > 0.8:
        return "high"
    if ratio > 0.5:
        return "medium"
    return "low"


def size_category(size: int) -> str:
    for bound, category in SIZE_CATEGORIES:
        if size < bound:
            return category
    return "huge"


def quality_from_resolution(resolution: Optional[float]) -> str:
    if not resolution:
        return "medium"
    if resolution >= 300:
        return "high"
    if resolution >= 150:
        return "medium"
    return "low"


class AssetMetadataService:
    """Builds and enriches AssetMetadata for extracted assets."""

    def generate_comprehensive_metadata(
        self,
        shape: Any,
        slide_index: int,
        extraction_method: str,
        include_transforms: bool = True,
        include_styles: bool = True,
    ) -> AssetMetadata:
        """
        Derive metadata from the engine shape an asset came from.

        Args:
            shape: Engine shape (None for slide-level sources such as transition sounds)
            slide_index: 0-based slide index
            extraction_method: How the asset was located (shape-picture, embedded-ole, ...)
            include_transforms: Read position/dimension/rotation
            include_styles: Read opacity/effects/3-D filters

        Returns:
            AssetMetadata; minimal metadata with error_count=1 if generation failed
        """
        started = time.perf_counter()
        try:
            metadata = AssetMetadata(
                extraction_method=extraction_method,
                has_data=True,
                slide_id=str(slide_index),
            )
            if shape is not None:
                if include_transforms:
                    metadata.transform = self.extract_transform(shape)
                if include_styles:
                    metadata.style = self.extract_style(shape)
                metadata.quality = self.extract_quality(shape)
                self._add_engine_hints(metadata, shape)
                metadata.linked_assets = self._linked_assets(shape)

            metadata.processing_time_ms = int((time.perf_counter() - started) * 1000)
            logger.debug(f"Generated metadata for slide {slide_index} ({extraction_method})")
            return metadata
        except Exception as e:
            logger.warning(f"Failed to generate metadata for slide {slide_index} ({extraction_method}): {e}")
            return AssetMetadata(
                extraction_method=extraction_method,
                has_data=True,
                processing_time_ms=int((time.perf_counter() - started) * 1000),
                error_count=1,
                warnings=[f"Metadata generation error: {e}"],
            )

    def extract_transform(self, shape: Any) -> Optional[AssetTransform]:
        if safe_get(shape, "width") is None and safe_get(shape, "left") is None:
            return None

        width = emu_to_points(safe_get(shape, "width"))
        height = emu_to_points(safe_get(shape, "height"))
        transform = AssetTransform(
            position=Position(
                x=emu_to_points(safe_get(shape, "left")),
                y=emu_to_points(safe_get(shape, "top")),
            ),
            dimensions=AssetDimensions(
                width=width,
                height=height,
                aspect_ratio=width / height if width > 0 and height > 0 else 0.0,
            ),
            rotation=safe_get(shape, "rotation"),
        )

        # frame size relative to the image's native size at its own DPI
        pixels = safe_get(shape, "image.size")
        dpi = safe_get(shape, "image.dpi")
        if isinstance(pixels, tuple) and isinstance(dpi, tuple) and all(pixels) and all(dpi):
            native_width = pixels[0] / dpi[0] * 72
            native_height = pixels[1] / dpi[1] * 72
            transform.scale_x = round(width / native_width, 4)
            transform.scale_y = round(height / native_height, 4)
        return transform

    def extract_style(self, shape: Any) -> Optional[AssetStyle]:
        element = xml_element(shape)
        style = AssetStyle()

        alpha = xpath(element, _ALPHA) or xpath(element, _BLIP_ALPHA)
        if alpha:
            style.opacity = min(max(int(alpha[0]) / 100000, 0.0), 1.0)

        effects: List[str] = []
        for node in xpath(element, _EFFECTS):
            name = EFFECT_NAMES.get(str(node.tag).rsplit("}", 1)[-1])
            if name and name not in effects:
                effects.append(name)
        style.effects = effects

        filters: Dict[str, Any] = {}
        for attribute in ("z", "extrusionH", "contourW"):
            values = xpath(element, f".//*[local-name()='sp3d']/@{attribute}")
            if values:
                filters[attribute] = emu_to_points(values[0])
        bevel = xpath(element, ".//*[local-name()='sp3d']/*[local-name()='bevelT']/@prst")
        if bevel:
            filters["bevelTop"] = str(bevel[0])
        style.filters = filters

        if style.opacity is None and not effects and not filters:
            return None
        return style

    def extract_quality(self, shape: Any) -> AssetQuality:
        quality = AssetQuality(quality="medium")
        dpi = safe_get(shape, "image.dpi")
        if isinstance(dpi, tuple) and dpi and dpi[0]:
            quality.resolution = float(dpi[0])
            quality.quality = quality_from_resolution(quality.resolution)

        state = xpath(xml_element(shape), _BLIP_STATE)
        if state:
            quality.compression = str(state[0])
        return quality

    def _add_engine_hints(self, metadata: AssetMetadata, shape: Any) -> None:
        shape_id = safe_get(shape, "shape_id")
        if shape_id is not None:
            metadata.shape_id = str(shape_id)
        metadata.shape_type = detect_shape_type(shape).value

        element = xml_element(shape)
        parent = safe_call(getattr(element, "getparent", None))
        if parent is not None and str(safe_get(parent, "tag", "")).endswith("}grpSp"):
            group_ids = xpath(parent, _GROUP_ID)
            if group_ids:
                metadata.parent_group_id = str(group_ids[0])

    def _linked_assets(self, shape: Any) -> List[str]:
        target = safe_get(shape, "click_action.target_slide")
        if target is None:
            return []
        slides = safe_get(target, "part.package.presentation_part.presentation.slides")
        index = safe_call(getattr(slides, "index", None), target)
        if isinstance(index, int):
            return [f"slide-{index + 1}"]
        slide_id = safe_get(target, "slide_id")
        return [f"slide-id-{slide_id}"] if slide_id is not None else []

    def enrich_metadata(self, metadata: AssetMetadata, data: Optional[bytes] = None) -> AssetMetadata:
        """
        Add byte-level analysis to a copy of metadata.

        Never raises: on failure the original metadata is returned with an
        extra warning.
        """
        started = time.perf_counter()
        try:
            enriched = copy.deepcopy(metadata)
            if data:
                enriched.mime_type = detect_mime_type(data)
                enriched.has_data = True

                quality = enriched.quality or AssetQuality()
                quality.compression = estimate_compression(data)
                enriched.quality = quality

                enriched.custom_properties["fileSignature"] = {
                    "hexSignature": data[:SIGNATURE_BYTES].hex().upper(),
                    "signatureLength": min(SIGNATURE_BYTES, len(data)),
                    "detectedFormat": enriched.mime_type,
                    "fileSize": len(data),
                }
                enriched.custom_properties["sizeAnalysis"] = {
                    "sizeBytes": len(data),
                    "sizeKB": round(len(data) / KB, 2),
                    "sizeMB": round(len(data) / MB, 2),
                    "sizeCategory": size_category(len(data)),
                }

            enriched.custom_properties["enrichedAt"] = utc_now_iso()
            enriched.custom_properties["enrichmentTimeMs"] = int((time.perf_counter() - started) * 1000)
            return enriched
        except Exception as e:
            logger.warning(f"Failed to enrich metadata: {e}")
            failed = metadata.model_copy()
            failed.warnings = list(metadata.warnings) + [f"Enrichment error: {e}"]
            return failed

    def validate_metadata(self, metadata: AssetMetadata) -> bool:
        """Check metadata invariants; returns False instead of raising."""
        try:
            if not metadata.extracted_at or not metadata.extraction_method or metadata.has_data is None:
                logger.warning("Metadata validation failed: missing required fields")
                return False

            try:
                datetime.fromisoformat(metadata.extracted_at.replace("Z", "+00:00"))
            except ValueError:
                logger.warning("Metadata validation failed: invalid extracted_at date")
                return False

            style = metadata.style
            if style is not None and style.opacity is not None and not 0 <= style.opacity <= 1:
                logger.warning("Metadata validation failed: opacity out of range")
                return False

            quality = metadata.quality
            if quality is not None:
                if quality.quality is not None and quality.quality not in QUALITY_LEVELS:
                    logger.warning(f"Metadata validation failed: unknown quality '{quality.quality}'")
                    return False
                if quality.resolution is not None and quality.resolution < 0:
                    logger.warning("Metadata validation failed: negative resolution")
                    return False
            return True
        except Exception as e:
            logger.warning(f"Metadata validation error: {e}")
            return False


_metadata_service: Optional[AssetMetadataService] = None


def get_metadata_service() -> AssetMetadataService:
    """Get or create the shared metadata service."""
    global _metadata_service
    if _metadata_service is None:
        _metadata_service = AssetMetadataService()
    return _metadata_service
