"""
Tests for whole-document extraction and the presentation loader.
"""

import io
from unittest.mock import patch

import pytest
from pptx import Presentation

from core.exceptions import ConfigurationError, ExtractionError
from core.loader import PresentationLoader
from extractors.extensions import ChartExtension, ExtensionRegistry
from extractors.presentation import PresentationExtractor, PresentationOptions
from utils.asset_schemas import SlideRange
from utils.schemas import ShapeType


class TestPresentationExtractor:
    """Tests for PresentationExtractor."""

    def test_failing_chart_does_not_fail_document(self, chart_presentation):
        registry = ExtensionRegistry()
        with patch.object(ChartExtension, "extract", side_effect=RuntimeError("chart part unreadable")):
            result = PresentationExtractor(registry=registry).extract(chart_presentation)

        assert result.metadata.slide_count == 3
        assert len(result.slides) == 3
        chart_slide = result.slides[1]
        assert any("Revenue Chart" in warning for warning in chart_slide.warnings)

        chart = next(shape for shape in chart_slide.shapes if shape.shape_type == ShapeType.CHART)
        assert chart.payload is None
        assert chart.geometry.width == 200.0

        texts = [slide.shapes[0].text_frame.text for slide in result.slides]
        assert texts == ["Slide 1", "Slide 2", "Slide 3"]
        assert result.slides[0].warnings == []

    def test_metadata_counts(self, basic_presentation):
        result = PresentationExtractor().extract(basic_presentation)

        assert result.metadata.slide_count == 1
        assert result.metadata.shape_count == 7
        assert result.metadata.table_count == 1
        assert result.metadata.chart_count == 0
        assert result.metadata.processing_time_ms is not None

    def test_document_level_properties(self, basic_presentation):
        basic_presentation.core_properties.title = "Quarterly Review"
        basic_presentation.core_properties.author = "Finance"
        result = PresentationExtractor().extract(basic_presentation)

        assert result.document_properties.title == "Quarterly Review"
        assert result.document_properties.author == "Finance"
        assert result.slide_size.width == 720.0
        assert result.slide_size.height == 540.0
        assert result.slide_size.orientation == "landscape"
        assert result.security.is_encrypted is False
        assert result.security.has_macros is False

    def test_masters_and_layouts(self, basic_presentation):
        result = PresentationExtractor().extract(basic_presentation)

        assert len(result.master_slides) == 1
        assert result.master_slides[0].layout_count == len(result.layout_slides)
        assert result.layout_slides[6].name == "Blank"

    def test_slide_range(self, chart_presentation):
        options = PresentationOptions(slide_range=SlideRange(start=1, end=2))
        result = PresentationExtractor().extract(chart_presentation, options)

        assert [slide.slide_index for slide in result.slides] == [1, 2]
        assert result.metadata.slide_count == 2

    def test_range_outside_document(self, chart_presentation):
        options = PresentationOptions(slide_range=SlideRange(start=10))
        with pytest.raises(ExtractionError):
            PresentationExtractor().extract(chart_presentation, options)

    def test_empty_document(self):
        with pytest.raises(ExtractionError):
            PresentationExtractor().extract(Presentation())

    def test_missing_handle(self):
        with pytest.raises(ConfigurationError):
            PresentationExtractor().extract(None)

    def test_validated_output(self, basic_presentation):
        result = PresentationExtractor().extract(basic_presentation, PresentationOptions(validate_output=True))
        assert result.metadata.slide_count == 1

    def test_to_json_drops_empty_fields(self, basic_presentation):
        document = PresentationExtractor().extract(basic_presentation).to_json()

        assert document["metadata"]["slide_count"] == 1
        assert "notes" not in document["slides"][0]
        assert document["slides"][0]["shapes"][1]["payload"]["kind"] == "autoShape"


class TestPresentationLoader:
    """Tests for PresentationLoader."""

    def test_load_from_bytes(self, pptx_bytes):
        loader = PresentationLoader(pptx_bytes)

        assert loader.file_size == len(pptx_bytes)
        assert loader.get_slide_count() == 1
        assert loader.get_dimensions()["orientation"] == "landscape"

    def test_load_from_stream(self, pptx_bytes):
        loader = PresentationLoader(io.BytesIO(pptx_bytes))
        assert loader.get_slide(0) is not None
        assert loader.get_slide(5) is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PresentationLoader(str(tmp_path / "missing.pptx"))

    def test_dispose_releases_handle(self, pptx_bytes):
        loader = PresentationLoader(pptx_bytes)
        loader.dispose()
        loader.dispose()

        assert loader.disposed is True
        with pytest.raises(ConfigurationError):
            loader.get_presentation()
