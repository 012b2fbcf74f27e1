"""
Reconstruction of engine-native slides from Universal Schema JSON.

Shapes are rebuilt in their stored order through the shape extension registry
(chart, table, SmartArt, group) or directly for the simple kinds. Kinds that
cannot be rebuilt natively get a rectangle stand-in occupying their frame.
A slide either reconstructs completely or is removed again.
"""

import base64
import io
import logging
from typing import Any, Dict, Optional, Union

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.dml import MSO_LINE_DASH_STYLE, MSO_PATTERN
from pptx.enum.shapes import MSO_AUTO_SHAPE_TYPE, MSO_CONNECTOR
from pptx.enum.text import MSO_ANCHOR, MSO_AUTO_SIZE, PP_ALIGN
from pptx.util import Emu, Pt

from core.exceptions import ReconstructionError
from extractors.extensions import (
    ExtensionContext,
    ExtensionRegistry,
    add_stand_in,
    get_extension_registry,
)
from utils.accessors import points_to_emu, safe_call, safe_get, safe_list, xml_element, xpath
from utils.schemas import (
    AutoShapePayload,
    ConnectorPayload,
    FillFormat,
    FontFormat,
    LineFormat,
    PicturePayload,
    ShapeType,
    TextFrame,
    UniversalPresentation,
    UniversalShape,
    UniversalSlide,
)

logger = logging.getLogger(__name__)

BLANK_LAYOUT_NAME = "Blank"

AUTO_SHAPE_DEFAULTS = {
    ShapeType.RECTANGLE: MSO_AUTO_SHAPE_TYPE.RECTANGLE,
    ShapeType.ELLIPSE: MSO_AUTO_SHAPE_TYPE.OVAL,
    ShapeType.AUTO_SHAPE: MSO_AUTO_SHAPE_TYPE.RECTANGLE,
}

_C_NV_PR = "./*[starts-with(local-name(), 'nv')]/*[local-name()='cNvPr']"


def _rgb(color: Optional[str]) -> Optional[RGBColor]:
    if not color:
        return None
    return RGBColor.from_string(color.lstrip("#").upper())


def _member(enumeration: Any, name: Optional[str]) -> Any:
    """Enumeration member by name, None when unknown."""
    if not name:
        return None
    return getattr(enumeration, name, None)


def _box(shape_json: UniversalShape):
    geometry = shape_json.geometry
    return (
        Emu(points_to_emu(geometry.x)),
        Emu(points_to_emu(geometry.y)),
        Emu(points_to_emu(geometry.width)),
        Emu(points_to_emu(geometry.height)),
    )


class ReconstructionMapper:
    """
    Builds slides in a python-pptx Presentation from UniversalSlide data.

    Args:
        registry: Shape extension registry used in reverse (default: shared one)
    """

    def __init__(self, registry: Optional[ExtensionRegistry] = None):
        self.registry = registry or get_extension_registry()

    def reconstruct(
        self,
        slide_json: Union[UniversalSlide, Dict[str, Any]],
        prs: Any,
        index: Optional[int] = None,
        layout: Any = None,
    ) -> Any:
        """
        Add one slide built from slide_json.

        Args:
            slide_json: UniversalSlide or its JSON dict
            prs: Destination presentation
            index: 0-based position for the new slide (default: append)
            layout: Slide layout to use (default: the "Blank" layout)

        Returns:
            The new engine slide

        Raises:
            ReconstructionError: if any shape cannot be rebuilt; the partial
                slide is removed from prs first
        """
        if isinstance(slide_json, dict):
            slide_json = UniversalSlide.model_validate(slide_json)

        slide = prs.slides.add_slide(layout if layout is not None else self._default_layout(prs))
        try:
            self._clear_placeholders(slide)
            self._build_slide(slide_json, slide)
            if index is not None:
                self._move_slide(prs, len(prs.slides) - 1, index)
        except Exception as e:
            logger.error(f"[RECONSTRUCT] Slide {slide_json.slide_index} failed, removing partial slide: {e}")
            self._remove_slide(prs, slide)
            raise ReconstructionError(f"Slide {slide_json.slide_index} reconstruction failed: {e}") from e

        logger.debug(f"[RECONSTRUCT] Slide {slide_json.slide_index} rebuilt with {len(slide_json.shapes)} shape(s)")
        return slide

    def reconstruct_presentation(
        self,
        document: Union[UniversalPresentation, Dict[str, Any]],
        skip_failed: bool = False,
    ) -> Any:
        """
        Build a new presentation from a Universal Schema document.

        Args:
            document: UniversalPresentation or its JSON dict
            skip_failed: Log and skip slides that fail instead of raising

        Returns:
            New python-pptx Presentation
        """
        if isinstance(document, dict):
            document = UniversalPresentation.model_validate(document)

        prs = Presentation()
        if document.slide_size is not None:
            prs.slide_width = Emu(points_to_emu(document.slide_size.width))
            prs.slide_height = Emu(points_to_emu(document.slide_size.height))

        properties = document.document_properties
        core = prs.core_properties
        for field in ("title", "author", "subject", "keywords", "category", "comments"):
            value = getattr(properties, field)
            if value:
                setattr(core, field, value)

        for slide_json in document.slides:
            try:
                self.reconstruct(slide_json, prs)
            except ReconstructionError as e:
                if not skip_failed:
                    raise
                logger.error(f"[RECONSTRUCT] Skipping slide: {e}")

        logger.info(f"[RECONSTRUCT] Built presentation with {len(prs.slides)} slide(s)")
        return prs

    # -- slide level --------------------------------------------------------

    def _default_layout(self, prs: Any) -> Any:
        layouts = prs.slide_layouts
        blank = safe_call(getattr(layouts, "get_by_name", None), BLANK_LAYOUT_NAME)
        if blank is not None:
            return blank
        # the layout with the fewest placeholders
        return min(list(layouts), key=lambda layout: len(layout.placeholders))

    def _clear_placeholders(self, slide: Any) -> None:
        for placeholder in list(slide.placeholders):
            element = placeholder._element
            element.getparent().remove(element)

    def _build_slide(self, slide_json: UniversalSlide, slide: Any) -> None:
        if slide_json.name:
            slide.name = slide_json.name
        if slide_json.hidden:
            slide._element.set("show", "0")

        background = slide_json.background
        if background is not None and background.fill is not None and not background.follows_master:
            self._apply(f"slide {slide_json.slide_index} background", self._apply_fill, slide.background.fill, background.fill)

        for shape_json in slide_json.shapes:
            self.build_shape(shape_json, slide.shapes)

        if slide_json.notes:
            slide.notes_slide.notes_text_frame.text = slide_json.notes

    def _move_slide(self, prs: Any, old_index: int, new_index: int) -> None:
        slide_ids = prs.slides._sldIdLst
        entries = list(slide_ids)
        new_index = max(0, min(new_index, len(entries) - 1))
        if new_index == old_index:
            return
        entry = entries[old_index]
        slide_ids.remove(entry)
        slide_ids.insert(new_index, entry)

    def _remove_slide(self, prs: Any, slide: Any) -> None:
        slide_ids = prs.slides._sldIdLst
        for entry in list(slide_ids):
            if entry.id == slide.slide_id:
                safe_call(prs.part.drop_rel, entry.rId)
                slide_ids.remove(entry)
                return

    # -- shapes -------------------------------------------------------------

    def build_shape(self, shape_json: UniversalShape, shapes: Any) -> Any:
        """Rebuild one shape (and its children) into a shape collection."""
        extension_type = ExtensionRegistry.for_shape_type(shape_json.shape_type)
        if extension_type is not None:
            context = ExtensionContext(build_child=self.build_shape)
            shape = self.registry.get(extension_type).reconstruct(shape_json, shapes, context)
            if shape_json.shape_type == ShapeType.GROUP:
                self._apply_common(shape, shape_json, geometry=False)
            else:
                self._apply_common(shape, shape_json)
            return shape

        builder = {
            ShapeType.TEXTBOX: self._build_textbox,
            ShapeType.PLACEHOLDER: self._build_textbox,
            ShapeType.RECTANGLE: self._build_auto_shape,
            ShapeType.ELLIPSE: self._build_auto_shape,
            ShapeType.AUTO_SHAPE: self._build_auto_shape,
            ShapeType.LINE: self._build_connector,
            ShapeType.CONNECTOR: self._build_connector,
            ShapeType.PICTURE: self._build_picture,
        }.get(shape_json.shape_type, self._build_stand_in)

        shape = builder(shape_json, shapes)
        self._apply_common(shape, shape_json)
        return shape

    def _build_textbox(self, shape_json: UniversalShape, shapes: Any) -> Any:
        shape = shapes.add_textbox(*_box(shape_json))
        self._apply_fill_and_line(shape, shape_json)
        return shape

    def _build_auto_shape(self, shape_json: UniversalShape, shapes: Any) -> Any:
        payload = shape_json.payload
        auto_shape_type = None
        if isinstance(payload, AutoShapePayload):
            auto_shape_type = _member(MSO_AUTO_SHAPE_TYPE, payload.auto_shape_type)
        if auto_shape_type is None:
            auto_shape_type = AUTO_SHAPE_DEFAULTS.get(shape_json.shape_type, MSO_AUTO_SHAPE_TYPE.RECTANGLE)

        shape = shapes.add_shape(auto_shape_type, *_box(shape_json))
        self._apply_fill_and_line(shape, shape_json)
        return shape

    def _build_connector(self, shape_json: UniversalShape, shapes: Any) -> Any:
        payload = shape_json.payload
        geometry = shape_json.geometry
        if isinstance(payload, ConnectorPayload) and None not in (
            payload.begin_x, payload.begin_y, payload.end_x, payload.end_y
        ):
            points = (payload.begin_x, payload.begin_y, payload.end_x, payload.end_y)
        else:
            points = (geometry.x, geometry.y, geometry.x + geometry.width, geometry.y + geometry.height)

        connector = shapes.add_connector(MSO_CONNECTOR.STRAIGHT, *(Emu(points_to_emu(p)) for p in points))
        if shape_json.line is not None:
            self._apply(shape_json.name, self._apply_line, connector.line, shape_json.line)
        return connector

    def _build_picture(self, shape_json: UniversalShape, shapes: Any) -> Any:
        payload = shape_json.payload
        if isinstance(payload, PicturePayload) and payload.image_base64:
            image = io.BytesIO(base64.b64decode(payload.image_base64))
            return shapes.add_picture(image, *_box(shape_json))
        return self._build_stand_in(shape_json, shapes)

    def _build_stand_in(self, shape_json: UniversalShape, shapes: Any) -> Any:
        logger.warning(
            f"[RECONSTRUCT] No native rebuild for '{shape_json.name}' ({shape_json.shape_type.value}), using stand-in"
        )
        text = None
        if shape_json.text_frame is None:
            text = shape_json.alt_text or shape_json.name or shape_json.shape_type.value
        return add_stand_in(shapes, shape_json, text)

    def _apply_common(self, shape: Any, shape_json: UniversalShape, geometry: bool = True) -> None:
        if shape_json.name:
            self._apply(shape_json.name, setattr, shape, "name", shape_json.name)
        if geometry and shape_json.geometry.rotation:
            self._apply(shape_json.name, setattr, shape, "rotation", shape_json.geometry.rotation)

        if shape_json.text_frame is not None and safe_get(shape, "has_text_frame") is True:
            self.apply_text_frame(shape.text_frame, shape_json.text_frame)

        if shape_json.hyperlink is not None and shape_json.hyperlink.target_url:
            self._apply(shape_json.name, self._apply_hyperlink, shape, shape_json.hyperlink.target_url)

        c_nv_pr = xpath(xml_element(shape), _C_NV_PR)
        if c_nv_pr:
            if shape_json.alt_text:
                c_nv_pr[0].set("descr", shape_json.alt_text)
            if shape_json.hidden:
                c_nv_pr[0].set("hidden", "1")

    # -- formats ------------------------------------------------------------

    def _apply(self, label: str, func, *args) -> None:
        """Apply one optional format; a format that cannot be applied is skipped."""
        try:
            func(*args)
        except Exception as e:
            logger.warning(f"[RECONSTRUCT] Could not apply {getattr(func, '__name__', 'format')} to '{label}': {e}")

    def _apply_fill_and_line(self, shape: Any, shape_json: UniversalShape) -> None:
        if shape_json.fill is not None:
            self._apply(shape_json.name, self._apply_fill, shape.fill, shape_json.fill)
        if shape_json.line is not None:
            self._apply(shape_json.name, self._apply_line, shape.line, shape_json.line)

    def _apply_fill(self, fill: Any, fill_json: FillFormat) -> None:
        fill_type = fill_json.fill_type
        if fill_type == "Solid" and fill_json.color:
            fill.solid()
            fill.fore_color.rgb = _rgb(fill_json.color)
        elif fill_type == "NoFill":
            fill.background()
        elif fill_type == "Gradient" and fill_json.gradient_stops:
            fill.gradient()
            for stop, stop_json in zip(fill.gradient_stops, fill_json.gradient_stops):
                stop.color.rgb = _rgb(stop_json.color)
            if fill_json.gradient_angle is not None:
                fill.gradient_angle = fill_json.gradient_angle
        elif fill_type == "Pattern":
            fill.patterned()
            pattern = _member(MSO_PATTERN, fill_json.pattern)
            if pattern is not None:
                fill.pattern = pattern
            if fill_json.fore_color:
                fill.fore_color.rgb = _rgb(fill_json.fore_color)
            if fill_json.back_color:
                fill.back_color.rgb = _rgb(fill_json.back_color)

    def _apply_line(self, line: Any, line_json: LineFormat) -> None:
        if line_json.fill_type == "NoFill":
            line.fill.background()
            return
        if line_json.color:
            line.color.rgb = _rgb(line_json.color)
        if line_json.width:
            line.width = Emu(points_to_emu(line_json.width))
        dash_style = _member(MSO_LINE_DASH_STYLE, line_json.dash_style)
        if dash_style is not None:
            line.dash_style = dash_style

    def _apply_hyperlink(self, shape: Any, address: str) -> None:
        shape.click_action.hyperlink.address = address

    def apply_text_frame(self, text_frame: Any, frame_json: TextFrame) -> None:
        """Write paragraphs and runs; plain text is preserved exactly."""
        paragraphs = frame_json.paragraphs
        if not paragraphs:
            text_frame.text = frame_json.text
        else:
            for index, paragraph_json in enumerate(paragraphs):
                paragraph = text_frame.paragraphs[0] if index == 0 else text_frame.add_paragraph()
                portions = paragraph_json.portions
                if portions and "".join(p.text for p in portions) == paragraph_json.text:
                    for portion in portions:
                        run = paragraph.add_run()
                        run.text = portion.text
                        self._apply("run", self._apply_font, run.font, portion.font)
                        if portion.hyperlink is not None and portion.hyperlink.target_url:
                            run.hyperlink.address = portion.hyperlink.target_url
                else:
                    # line breaks live in the paragraph text, not in the runs
                    paragraph.text = paragraph_json.text
                    if portions:
                        for run in paragraph.runs:
                            self._apply("run", self._apply_font, run.font, portions[0].font)

                if paragraph_json.level:
                    paragraph.level = paragraph_json.level
                alignment = _member(PP_ALIGN, paragraph_json.alignment)
                if alignment is not None:
                    paragraph.alignment = alignment

        if frame_json.word_wrap is not None:
            text_frame.word_wrap = frame_json.word_wrap
        anchor = _member(MSO_ANCHOR, frame_json.vertical_anchor)
        if anchor is not None:
            text_frame.vertical_anchor = anchor
        auto_size = _member(MSO_AUTO_SIZE, frame_json.auto_size)
        if auto_size is not None:
            text_frame.auto_size = auto_size
        for side in ("left", "right", "top", "bottom"):
            value = getattr(frame_json, f"margin_{side}")
            if value is not None:
                setattr(text_frame, f"margin_{side}", Emu(points_to_emu(value)))

    def _apply_font(self, font: Any, font_json: FontFormat) -> None:
        font.name = font_json.name
        font.size = Pt(font_json.size)
        font.bold = font_json.bold or None
        font.italic = font_json.italic or None
        if font_json.underline:
            font.underline = True
        if font_json.color:
            font.color.rgb = _rgb(font_json.color)
