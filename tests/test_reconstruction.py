"""
Tests for rebuilding slides from Universal Schema data.
"""

import io
from unittest.mock import patch

import pytest
from pptx import Presentation
from pptx.util import Pt

from core.exceptions import ReconstructionError
from core.reconstruction import ReconstructionMapper
from extractors.presentation import PresentationExtractor, PresentationOptions
from extractors.slides import SlideExtractor
from utils.schemas import Geometry, ShapeType, UniversalShape, UniversalSlide

from conftest import add_column_chart, blank_slide, build_basic_slide, png_bytes


def _summary(slide_json):
    return [
        (
            shape.name,
            shape.shape_type,
            shape.geometry.x,
            shape.geometry.y,
            shape.geometry.width,
            shape.geometry.height,
            shape.text_frame.text if shape.text_frame else None,
        )
        for shape in slide_json.shapes
    ]


def _round_trip(prs, options=None):
    document = PresentationExtractor().extract(prs, options)
    rebuilt = ReconstructionMapper().reconstruct_presentation(document.to_json())
    return document, PresentationExtractor().extract(rebuilt, options)


class TestSlideRoundTrip:
    """Tests for extract then reconstruct then extract."""

    def test_shapes_geometry_and_text_survive(self, basic_presentation):
        original, rebuilt = _round_trip(basic_presentation)

        assert len(rebuilt.slides) == 1
        assert _summary(rebuilt.slides[0]) == _summary(original.slides[0])

    def test_formats_survive(self, basic_presentation):
        _, rebuilt = _round_trip(basic_presentation)
        rectangle = next(shape for shape in rebuilt.slides[0].shapes if shape.name == "Accent")

        assert rectangle.fill.color == "#1F4E79"
        assert rectangle.line.color == "#FF0000"
        assert rectangle.line.width == 2.0

    def test_group_children_survive(self, basic_presentation):
        original, rebuilt = _round_trip(basic_presentation)
        group = rebuilt.slides[0].shapes[4]

        assert group.shape_type == ShapeType.GROUP
        assert _summary(group.payload) == _summary(original.slides[0].shapes[4].payload)

    def test_table_cells_survive(self, basic_presentation):
        _, rebuilt = _round_trip(basic_presentation)
        table = rebuilt.slides[0].shapes[3].payload

        assert [[cell.text for cell in row] for row in table.cells] == [["A", "B"], ["1", "2"]]

    def test_chart_data_survives(self, chart_presentation):
        _, rebuilt = _round_trip(chart_presentation)
        chart = next(shape for shape in rebuilt.slides[1].shapes if shape.shape_type == ShapeType.CHART)

        assert chart.name == "Revenue Chart"
        assert chart.payload.categories == ["Q1", "Q2", "Q3"]
        assert chart.payload.series[0].values == [1.0, 2.5, 4.0]

    def test_chart_axes_survive(self, chart_presentation):
        chart = next(shape for shape in chart_presentation.slides[1].shapes if shape.has_chart).chart
        chart.category_axis.visible = False
        value_axis = chart.value_axis
        value_axis.minimum_scale = 0
        value_axis.maximum_scale = 5
        value_axis.has_major_gridlines = True
        value_axis.tick_labels.number_format = "0.0"
        value_axis.tick_labels.number_format_is_linked = False

        original, rebuilt = _round_trip(chart_presentation)
        before = next(s for s in original.slides[1].shapes if s.shape_type == ShapeType.CHART).payload.axes
        after = next(s for s in rebuilt.slides[1].shapes if s.shape_type == ShapeType.CHART).payload.axes

        assert after == before
        assert after[0].visible is False
        assert (after[1].minimum, after[1].maximum, after[1].number_format) == (0.0, 5.0, "0.0")
        assert after[1].has_major_gridlines is True

    def test_embedded_picture(self, presentation):
        blank_slide(presentation).shapes.add_picture(io.BytesIO(png_bytes((10, 120, 200))), Pt(10), Pt(10), Pt(40), Pt(40))
        _, rebuilt = _round_trip(presentation, PresentationOptions(embed_images=True))

        assert rebuilt.slides[0].shapes[0].shape_type == ShapeType.PICTURE

    def test_notes_hidden_and_properties(self, basic_presentation):
        slide = basic_presentation.slides[0]
        slide.notes_slide.notes_text_frame.text = "Keep it short"
        slide._element.set("show", "0")
        basic_presentation.core_properties.title = "Rebuilt deck"

        _, rebuilt = _round_trip(basic_presentation)

        assert rebuilt.slides[0].notes == "Keep it short"
        assert rebuilt.slides[0].hidden is True
        assert rebuilt.document_properties.title == "Rebuilt deck"


class TestReconstructionMapper:
    """Tests for slide placement and failure handling."""

    def test_insert_at_index(self, presentation):
        blank_slide(presentation)
        blank_slide(presentation)
        slide_json = UniversalSlide(slide_id=1, shapes=[
            UniversalShape(name="Only", shape_type=ShapeType.TEXTBOX, geometry=Geometry(width=100, height=20)),
        ])

        slide = ReconstructionMapper().reconstruct(slide_json, presentation, index=0)

        assert len(presentation.slides) == 3
        assert presentation.slides[0].slide_id == slide.slide_id
        assert presentation.slides[0].shapes[0].name == "Only"

    def test_accepts_json_dict(self, presentation):
        slide = build_basic_slide(presentation)
        slide_json = SlideExtractor().extract(slide).model_dump(mode="json")

        rebuilt = ReconstructionMapper().reconstruct(slide_json, presentation)
        assert len(rebuilt.shapes) == 5

    def test_failure_removes_partial_slide(self, presentation):
        blank_slide(presentation)
        slide_json = SlideExtractor().extract(build_basic_slide(Presentation()))

        with patch.object(ReconstructionMapper, "_build_connector", side_effect=RuntimeError("bad connector")):
            with pytest.raises(ReconstructionError):
                ReconstructionMapper().reconstruct(slide_json, presentation)

        assert len(presentation.slides) == 1

    def test_skip_failed_slides(self, basic_presentation):
        second = blank_slide(basic_presentation)
        second.shapes.add_textbox(Pt(0), Pt(0), Pt(100), Pt(20)).text_frame.text = "Survivor"
        document = PresentationExtractor().extract(basic_presentation)
        mapper = ReconstructionMapper()

        with patch.object(ReconstructionMapper, "_build_connector", side_effect=RuntimeError("bad connector")):
            with pytest.raises(ReconstructionError):
                mapper.reconstruct_presentation(document)
            prs = mapper.reconstruct_presentation(document, skip_failed=True)

        assert len(prs.slides) == 1
        assert prs.slides[0].shapes[0].text_frame.text == "Survivor"

    def test_unsupported_kind_gets_stand_in(self, presentation):
        slide_json = UniversalSlide(slide_id=1, shapes=[
            UniversalShape(
                name="Clip",
                shape_type=ShapeType.VIDEO,
                geometry=Geometry(x=10, y=20, width=160, height=90),
            ),
        ])

        slide = ReconstructionMapper().reconstruct(slide_json, presentation)
        stand_in = slide.shapes[0]

        assert stand_in.name == "Clip"
        assert stand_in.width == Pt(160)
        assert stand_in.text_frame.text == "Clip"

    def test_unknown_format_values_are_skipped(self, presentation):
        slide = build_basic_slide(Presentation())
        slide_json = SlideExtractor().extract(slide)
        slide_json.shapes[1].line.dash_style = "NOT_A_DASH"
        slide_json.shapes[1].fill.fill_type = "Pattern"
        slide_json.shapes[1].fill.pattern = "NOT_A_PATTERN"

        rebuilt = ReconstructionMapper().reconstruct(slide_json, presentation)
        assert len(rebuilt.shapes) == 5

    def test_chart_on_new_slide(self, presentation):
        chart_slide = blank_slide(Presentation())
        add_column_chart(chart_slide.shapes)
        slide_json = SlideExtractor().extract(chart_slide)

        slide = ReconstructionMapper().reconstruct(slide_json, presentation)
        assert slide.shapes[0].has_chart is True
