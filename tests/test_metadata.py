"""
Tests for AssetMetadataService.
"""

import io
import os
from unittest.mock import patch

from pptx.util import Pt

from core.metadata import (
    KB,
    MB,
    AssetMetadataService,
    detect_mime_type,
    estimate_compression,
    size_category,
)
from utils.asset_schemas import AssetMetadata, AssetQuality, AssetStyle

from conftest import MP4_BYTES, blank_slide, png_bytes


class TestByteAnalysis:
    """Tests for the byte-level helpers."""

    def test_mime_sniffing(self):
        assert detect_mime_type(png_bytes()) == "image/png"
        assert detect_mime_type(b"\xff\xd8\xff\xe1") == "image/jpeg"
        assert detect_mime_type(MP4_BYTES) == "video/mp4"
        assert detect_mime_type(b"%PDF-1.4") == "application/pdf"
        assert detect_mime_type(b"RIFF\x00\x00\x00\x00WAVEfmt ") == "audio/wav"
        assert detect_mime_type(b"\x00\x01\x02") == "application/octet-stream"

    def test_compression_estimate(self):
        assert estimate_compression(bytes(1024)) == "low"
        assert estimate_compression(os.urandom(1024)) == "high"

    def test_size_categories(self):
        assert size_category(10) == "tiny"
        assert size_category(2 * KB) == "small"
        assert size_category(5 * MB) == "medium"
        assert size_category(50 * MB) == "large"
        assert size_category(200 * MB) == "huge"


class TestMetadataGeneration:
    """Tests for generate_comprehensive_metadata."""

    def test_picture_metadata(self, presentation):
        picture = blank_slide(presentation).shapes.add_picture(
            io.BytesIO(png_bytes(size=(8, 8))), Pt(30), Pt(40), Pt(16), Pt(8)
        )
        metadata = AssetMetadataService().generate_comprehensive_metadata(picture, 2, "shape-picture")

        assert metadata.has_data is True
        assert metadata.slide_id == "2"
        assert metadata.shape_type == "picture"
        assert metadata.shape_id == str(picture.shape_id)
        assert metadata.transform.position.x == 30.0
        assert metadata.transform.dimensions.aspect_ratio == 2.0
        assert metadata.quality.resolution == 72.0
        assert metadata.quality.quality == "low"

    def test_transforms_can_be_skipped(self, presentation):
        picture = blank_slide(presentation).shapes.add_picture(io.BytesIO(png_bytes()), Pt(0), Pt(0))
        metadata = AssetMetadataService().generate_comprehensive_metadata(
            picture, 0, "shape-picture", include_transforms=False, include_styles=False
        )

        assert metadata.transform is None
        assert metadata.style is None

    def test_slide_level_source(self):
        metadata = AssetMetadataService().generate_comprehensive_metadata(None, 3, "slide-transition")
        assert metadata.extraction_method == "slide-transition"
        assert metadata.transform is None

    def test_failure_yields_minimal_metadata(self, presentation):
        picture = blank_slide(presentation).shapes.add_picture(io.BytesIO(png_bytes()), Pt(0), Pt(0))
        service = AssetMetadataService()

        with patch.object(service, "extract_transform", side_effect=RuntimeError("bad xfrm")):
            metadata = service.generate_comprehensive_metadata(picture, 0, "shape-picture")

        assert metadata.error_count == 1
        assert metadata.warnings == ["Metadata generation error: bad xfrm"]


class TestEnrichment:
    """Tests for enrich_metadata."""

    def test_enrich_adds_byte_analysis(self):
        original = AssetMetadata(extraction_method="shape-picture")
        data = png_bytes()
        enriched = AssetMetadataService().enrich_metadata(original, data)

        assert enriched.mime_type == "image/png"
        assert enriched.quality.compression in ("low", "medium", "high")
        signature = enriched.custom_properties["fileSignature"]
        assert signature["hexSignature"].startswith("89504E47")
        assert signature["fileSize"] == len(data)
        assert enriched.custom_properties["sizeAnalysis"]["sizeCategory"] == "tiny"
        assert "enrichedAt" in enriched.custom_properties

    def test_enrich_does_not_mutate_input(self):
        original = AssetMetadata(extraction_method="shape-picture")
        AssetMetadataService().enrich_metadata(original, png_bytes())

        assert original.mime_type is None
        assert original.custom_properties == {}

    def test_enrich_without_data(self):
        enriched = AssetMetadataService().enrich_metadata(AssetMetadata())
        assert "fileSignature" not in enriched.custom_properties
        assert "enrichedAt" in enriched.custom_properties

    def test_enrich_never_raises(self):
        original = AssetMetadata(extraction_method="shape-picture")
        with patch("core.metadata.detect_mime_type", side_effect=RuntimeError("sniffer crashed")):
            enriched = AssetMetadataService().enrich_metadata(original, b"\x89PNG")

        assert enriched.extraction_method == "shape-picture"
        assert enriched.warnings == ["Enrichment error: sniffer crashed"]


class TestValidation:
    """Tests for validate_metadata."""

    def test_valid(self):
        assert AssetMetadataService().validate_metadata(AssetMetadata(extraction_method="shape-picture")) is True

    def test_bad_timestamp(self):
        metadata = AssetMetadata(extraction_method="x", extracted_at="yesterday")
        assert AssetMetadataService().validate_metadata(metadata) is False

    def test_opacity_out_of_range(self):
        metadata = AssetMetadata(extraction_method="x", style=AssetStyle(opacity=1.5))
        assert AssetMetadataService().validate_metadata(metadata) is False

    def test_unknown_quality_level(self):
        metadata = AssetMetadata(extraction_method="x", quality=AssetQuality(quality="ultra"))
        assert AssetMetadataService().validate_metadata(metadata) is False
