"""
Tests for shape extraction and the shape extension registry.
"""

import io
from types import SimpleNamespace
from unittest.mock import patch

from pptx.chart.data import CategoryChartData
from pptx.enum.chart import XL_CHART_TYPE
from pptx.util import Pt

from extractors.extensions import (
    ChartExtension,
    ExtensionRegistry,
    ExtensionType,
    UnsupportedExtension,
)
from extractors.shapes import ShapeExtractor, detect_shape_type
from utils.schemas import ShapeType

from conftest import add_column_chart, blank_slide, build_basic_slide, engine_object, png_bytes


def _by_name(shapes, name):
    return next(shape for shape in shapes if shape.name == name)


class TestShapeTypeDetection:
    """Tests for resolving shape kinds."""

    def test_basic_slide_kinds(self, presentation):
        slide = build_basic_slide(presentation)
        kinds = [detect_shape_type(shape) for shape in slide.shapes]

        assert kinds == [
            ShapeType.TEXTBOX,
            ShapeType.RECTANGLE,
            ShapeType.CONNECTOR,
            ShapeType.TABLE,
            ShapeType.GROUP,
        ]

    def test_chart_and_picture(self, presentation):
        slide = blank_slide(presentation)
        chart = add_column_chart(slide.shapes)
        picture = slide.shapes.add_picture(io.BytesIO(png_bytes()), Pt(0), Pt(0))

        assert detect_shape_type(chart) == ShapeType.CHART
        assert detect_shape_type(picture) == ShapeType.PICTURE

    def test_unknown_for_opaque_object(self):
        assert detect_shape_type(SimpleNamespace()) == ShapeType.UNKNOWN


class TestShapeExtractor:
    """Tests for ShapeExtractor."""

    def test_extracts_formats_and_text(self, presentation):
        slide = build_basic_slide(presentation)
        extractor = ShapeExtractor()
        rectangle = extractor.extract(_by_name(slide.shapes, "Accent"))

        assert rectangle.shape_type == ShapeType.RECTANGLE
        assert rectangle.geometry.width == 120.0
        assert rectangle.fill.color == "#1F4E79"
        assert rectangle.line.color == "#FF0000"
        assert rectangle.line.width == 2.0
        assert rectangle.text_frame.text == "Box"
        assert rectangle.payload.kind == "autoShape"
        assert rectangle.payload.auto_shape_type == "RECTANGLE"

    def test_connector_payload(self, presentation):
        slide = build_basic_slide(presentation)
        connector = ShapeExtractor().extract(slide.shapes[2])

        assert connector.payload.kind == "connector"
        assert (connector.payload.begin_x, connector.payload.end_y) == (200.0, 340.0)

    def test_table_payload(self, presentation):
        slide = build_basic_slide(presentation)
        table = ShapeExtractor().extract(slide.shapes[3])

        assert table.payload.kind == "table"
        assert (table.payload.rows, table.payload.columns) == (2, 2)
        assert [[cell.text for cell in row] for row in table.payload.cells] == [["A", "B"], ["1", "2"]]

    def test_group_recursion(self, presentation):
        slide = build_basic_slide(presentation)
        group = ShapeExtractor().extract(_by_name(slide.shapes, "Pair"))

        assert group.shape_type == ShapeType.GROUP
        children = group.payload.shapes
        assert [child.shape_type for child in children] == [ShapeType.ELLIPSE, ShapeType.TEXTBOX]
        assert children[1].text_frame.text == "Grouped"

    def test_group_depth_guard(self, presentation):
        slide = blank_slide(presentation)
        outer = slide.shapes.add_group_shape()
        inner = outer.shapes.add_group_shape()
        inner.shapes.add_textbox(Pt(0), Pt(0), Pt(10), Pt(10))

        warnings = []
        group = ShapeExtractor(max_depth=1).extract(outer, warnings=warnings)

        nested = group.payload.shapes[0]
        assert nested.shape_type == ShapeType.GROUP
        assert nested.payload.shapes == []
        assert any("nesting depth" in warning for warning in warnings)

    def test_chart_payload(self, presentation):
        chart = add_column_chart(blank_slide(presentation).shapes)
        result = ShapeExtractor().extract(chart)

        assert result.payload.kind == "chart"
        assert result.payload.categories == ["Q1", "Q2", "Q3"]
        assert result.payload.series[0].name == "Revenue"
        assert result.payload.series[0].values == [1.0, 2.5, 4.0]

    def test_chart_axes(self, presentation):
        chart = add_column_chart(blank_slide(presentation).shapes)
        value_axis = chart.chart.value_axis
        value_axis.minimum_scale = 0
        value_axis.maximum_scale = 5
        value_axis.has_title = True
        value_axis.axis_title.text_frame.text = "Revenue (M)"

        axes = ShapeExtractor().extract(chart).payload.axes

        assert [axis.axis_type for axis in axes] == ["category", "value"]
        assert axes[0].title is None
        assert axes[0].minimum is None
        assert (axes[1].minimum, axes[1].maximum) == (0.0, 5.0)
        assert axes[1].title == "Revenue (M)"
        assert axes[1].visible is True

    def test_pie_chart_has_no_axes(self, presentation):
        chart_data = CategoryChartData()
        chart_data.categories = ["North", "South"]
        chart_data.add_series("Share", (60.0, 40.0))
        pie = blank_slide(presentation).shapes.add_chart(XL_CHART_TYPE.PIE, Pt(0), Pt(0), Pt(200), Pt(200), chart_data)

        payload = ShapeExtractor().extract(pie).payload

        assert payload.chart_type == "PIE"
        assert payload.axes == []

    def test_failing_extension_keeps_shape(self, presentation):
        chart = add_column_chart(blank_slide(presentation).shapes)
        chart.name = "Broken Chart"
        warnings = []

        with patch.object(ChartExtension, "extract", side_effect=RuntimeError("chart part unreadable")):
            result = ShapeExtractor(registry=ExtensionRegistry()).extract(chart, warnings=warnings)

        assert result.shape_type == ShapeType.CHART
        assert result.payload is None
        assert result.geometry.width == 200.0
        assert any("Broken Chart" in warning for warning in warnings)

    def test_disabled_extension_has_no_payload(self, presentation):
        chart = add_column_chart(blank_slide(presentation).shapes)
        result = ShapeExtractor(extensions=[ExtensionType.TABLE]).extract(chart)

        assert result.shape_type == ShapeType.CHART
        assert result.payload is None

    def test_embedded_picture_bytes(self, presentation):
        data = png_bytes((1, 2, 3))
        picture = blank_slide(presentation).shapes.add_picture(io.BytesIO(data), Pt(0), Pt(0), Pt(20), Pt(20))

        without = ShapeExtractor().extract(picture)
        embedded = ShapeExtractor(embed_images=True).extract(picture)

        assert without.payload.image_base64 is None
        assert without.payload.image_format == "png"
        assert embedded.payload.image_base64 is not None

    def test_raising_accessor_keeps_other_properties(self):
        shape = engine_object(
            raising=("fill",),
            name="Fragile",
            left=Pt(10),
            top=Pt(10),
            width=Pt(50),
            height=Pt(20),
            line=SimpleNamespace(width=Pt(1)),
        )
        result = ShapeExtractor().extract(shape)

        assert result.name == "Fragile"
        assert result.fill is None
        assert result.geometry.width == 50.0
        assert result.line.width == 1.0

    def test_extract_safely_records_failure(self):
        warnings = []
        with patch("extractors.shapes.detect_shape_type", side_effect=RuntimeError("corrupt")):
            result = ShapeExtractor().extract_safely(SimpleNamespace(name="Bad"), warnings=warnings)

        assert result is None
        assert warnings == ["Shape 'Bad' skipped: corrupt"]


class TestExtensionRegistry:
    """Tests for the typed extension registry."""

    def test_unknown_key_falls_back(self):
        registry = ExtensionRegistry()
        assert isinstance(registry.get("hologram"), UnsupportedExtension)

    def test_supported_types(self):
        assert set(ExtensionRegistry().supported_types()) == set(ExtensionType)

    def test_register_replaces_handler(self):
        registry = ExtensionRegistry()
        handler = UnsupportedExtension()
        registry.register("chart", handler)
        assert registry.get(ExtensionType.CHART) is handler

    def test_shape_type_mapping(self):
        assert ExtensionRegistry.for_shape_type(ShapeType.GROUP) == ExtensionType.GROUP
        assert ExtensionRegistry.for_shape_type(ShapeType.PICTURE) is None
