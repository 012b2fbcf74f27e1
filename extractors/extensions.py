"""
Shape extension registry.

Type-specific payloads (chart, table, SmartArt, group) are produced and
rebuilt by extensions looked up in a registry keyed by ExtensionType. Keys
outside the enumeration resolve to UnsupportedExtension, never to None.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from lxml import etree
from pptx.chart.data import CategoryChartData
from pptx.enum.chart import XL_CHART_TYPE
from pptx.enum.shapes import MSO_AUTO_SHAPE_TYPE
from pptx.util import Emu

from core.config import MAX_GROUP_DEPTH
from extractors.text import extract_font
from utils.accessors import (
    emu_to_points,
    enum_name,
    points_to_emu,
    safe_call,
    safe_get,
    safe_list,
    xml_element,
    xpath,
)
from utils.colors import extract_color
from utils.schemas import (
    ChartAxis,
    ChartPayload,
    ChartSeries,
    GroupPayload,
    ShapeType,
    SmartArtPayload,
    TableCell,
    TablePayload,
    UniversalShape,
    UnsupportedPayload,
)

logger = logging.getLogger(__name__)

R_NAMESPACE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"


class ExtensionType(str, Enum):
    CHART = "chart"
    TABLE = "table"
    SMART_ART = "smartArt"
    GROUP = "group"


EXTENSION_FOR_SHAPE: Dict[ShapeType, ExtensionType] = {
    ShapeType.CHART: ExtensionType.CHART,
    ShapeType.TABLE: ExtensionType.TABLE,
    ShapeType.SMART_ART: ExtensionType.SMART_ART,
    ShapeType.GROUP: ExtensionType.GROUP,
}

ALL_EXTENSIONS: List[ExtensionType] = list(ExtensionType)


class ExtensionContext:
    """
    State shared with an extension for one shape.

    Args:
        depth: Nesting depth of the shape being handled (0 = on the slide)
        warnings: Slide-level warning list to append to
        extract_child: Callback extracting a nested shape (groups)
        build_child: Callback rebuilding a nested shape into a shape collection
        max_depth: Group recursion limit
    """

    def __init__(
        self,
        depth: int = 0,
        warnings: Optional[List[str]] = None,
        extract_child: Optional[Callable[..., Optional[UniversalShape]]] = None,
        build_child: Optional[Callable[[UniversalShape, Any], Any]] = None,
        max_depth: int = MAX_GROUP_DEPTH,
    ):
        self.depth = depth
        self.warnings = warnings if warnings is not None else []
        self.extract_child = extract_child
        self.build_child = build_child
        self.max_depth = max_depth


def _frame_box(shape_json: UniversalShape):
    geometry = shape_json.geometry
    return (
        Emu(points_to_emu(geometry.x)),
        Emu(points_to_emu(geometry.y)),
        Emu(max(points_to_emu(geometry.width), 1)),
        Emu(max(points_to_emu(geometry.height), 1)),
    )


def add_stand_in(shapes: Any, shape_json: UniversalShape, text: Optional[str] = None) -> Any:
    """Rectangle occupying the original frame, used where a native rebuild is impossible."""
    stand_in = shapes.add_shape(MSO_AUTO_SHAPE_TYPE.RECTANGLE, *_frame_box(shape_json))
    if text:
        stand_in.text_frame.text = text
    return stand_in


class ShapeExtension:
    """Base class: extracts and rebuilds one type-specific payload."""

    extension_type: Optional[ExtensionType] = None

    def extract(self, shape: Any, context: ExtensionContext):
        raise NotImplementedError

    def reconstruct(self, shape_json: UniversalShape, shapes: Any, context: ExtensionContext) -> Any:
        raise NotImplementedError


_CHART_AXES = (("category", "category_axis"), ("value", "value_axis"))


def _scale(value: Any) -> Optional[float]:
    return float(value) if isinstance(value, (int, float)) else None


def extract_chart_axes(chart: Any) -> List[ChartAxis]:
    """Axes of a category chart; charts without axes (pie, doughnut) give []."""
    axes = []
    for axis_type, attribute in _CHART_AXES:
        # the engine raises for axis-less chart types
        axis = safe_get(chart, attribute)
        if axis is None:
            continue
        title = None
        # axis_title creates the element on read
        if safe_get(axis, "has_title") is True:
            title = safe_get(axis, "axis_title.text_frame.text")
        axes.append(
            ChartAxis(
                axis_type=axis_type,
                title=title,
                visible=safe_get(axis, "visible") is not False,
                minimum=_scale(safe_get(axis, "minimum_scale")),
                maximum=_scale(safe_get(axis, "maximum_scale")),
                number_format=safe_get(axis, "tick_labels.number_format"),
                has_major_gridlines=safe_get(axis, "has_major_gridlines") is True,
            )
        )
    return axes


def apply_chart_axis(chart: Any, axis_json: ChartAxis) -> None:
    axis = safe_get(chart, dict(_CHART_AXES)[axis_json.axis_type])
    if axis is None:
        logger.debug(f"Chart has no {axis_json.axis_type} axis, axis settings skipped")
        return
    if axis_json.title:
        axis.has_title = True
        axis.axis_title.text_frame.text = axis_json.title
    axis.visible = axis_json.visible
    if axis_json.minimum is not None:
        axis.minimum_scale = axis_json.minimum
    if axis_json.maximum is not None:
        axis.maximum_scale = axis_json.maximum
    if axis_json.number_format and axis_json.number_format != "General":
        axis.tick_labels.number_format = axis_json.number_format
        axis.tick_labels.number_format_is_linked = False
    axis.has_major_gridlines = axis_json.has_major_gridlines


class ChartExtension(ShapeExtension):
    extension_type = ExtensionType.CHART

    def extract(self, shape: Any, context: ExtensionContext) -> ChartPayload:
        # an unreadable chart part fails the whole payload
        chart = shape.chart

        title = None
        if safe_get(chart, "has_title") is True:
            title = safe_get(chart, "chart_title.text_frame.text")

        categories = []
        plots = safe_list(chart, "plots")
        if plots:
            for category in safe_list(plots[0], "categories"):
                categories.append(category if isinstance(category, (int, float)) else str(category))

        series = []
        for item in safe_list(chart, "series"):
            values = []
            for value in safe_list(item, "values"):
                values.append(float(value) if isinstance(value, (int, float)) else None)
            series.append(ChartSeries(name=str(safe_get(item, "name", "") or ""), values=values))

        has_legend = safe_get(chart, "has_legend") is True
        return ChartPayload(
            chart_type=enum_name(safe_get(chart, "chart_type")),
            title=title,
            categories=categories,
            series=series,
            has_legend=has_legend,
            legend_position=enum_name(safe_get(chart, "legend.position")) if has_legend else None,
            axes=extract_chart_axes(chart),
        )

    def reconstruct(self, shape_json: UniversalShape, shapes: Any, context: ExtensionContext) -> Any:
        payload = shape_json.payload
        if not isinstance(payload, ChartPayload) or not payload.series:
            return add_stand_in(shapes, shape_json, payload.title if isinstance(payload, ChartPayload) else None)

        point_count = max(len(s.values) for s in payload.series)
        categories = list(payload.categories) or [str(i + 1) for i in range(point_count)]

        chart_data = CategoryChartData()
        chart_data.categories = categories
        for item in payload.series:
            chart_data.add_series(item.name, item.values)

        chart_type = getattr(XL_CHART_TYPE, payload.chart_type or "", None) or XL_CHART_TYPE.COLUMN_CLUSTERED
        graphic_frame = shapes.add_chart(chart_type, *_frame_box(shape_json), chart_data)

        chart = graphic_frame.chart
        if payload.title:
            chart.has_title = True
            chart.chart_title.text_frame.text = payload.title
        chart.has_legend = payload.has_legend
        for axis_json in payload.axes:
            try:
                apply_chart_axis(chart, axis_json)
            except Exception as e:
                logger.debug(f"Chart {axis_json.axis_type} axis not restored: {e}")
        return graphic_frame


class TableExtension(ShapeExtension):
    extension_type = ExtensionType.TABLE

    def _cell(self, cell: Any) -> TableCell:
        fill = safe_get(cell, "fill")
        fill_color = None
        if enum_name(safe_get(fill, "type")) == "SOLID":
            fill_color = extract_color(safe_get(fill, "fore_color"))

        font = None
        runs = []
        paragraphs = safe_list(cell, "text_frame.paragraphs")
        if paragraphs:
            runs = safe_list(paragraphs[0], "runs")
        if runs:
            font = extract_font(safe_get(runs[0], "font"))

        row_span = safe_get(cell, "span_height", 1)
        col_span = safe_get(cell, "span_width", 1)
        return TableCell(
            text=safe_get(cell, "text", "") or "",
            row_span=row_span if isinstance(row_span, int) else 1,
            col_span=col_span if isinstance(col_span, int) else 1,
            is_spanned=safe_get(cell, "is_spanned") is True,
            fill_color=fill_color,
            font=font,
        )

    def extract(self, shape: Any, context: ExtensionContext) -> TablePayload:
        table = shape.table
        rows = safe_list(table, "rows")
        columns = safe_list(table, "columns")

        cells = []
        for row in rows:
            cells.append([self._cell(cell) for cell in safe_list(row, "cells")])

        return TablePayload(
            rows=len(rows),
            columns=len(columns),
            column_widths=[emu_to_points(safe_get(column, "width")) for column in columns],
            row_heights=[emu_to_points(safe_get(row, "height")) for row in rows],
            cells=cells,
            first_row=safe_get(table, "first_row") is True,
            first_col=safe_get(table, "first_col") is True,
            horz_banding=safe_get(table, "horz_banding") is True,
        )

    def reconstruct(self, shape_json: UniversalShape, shapes: Any, context: ExtensionContext) -> Any:
        payload = shape_json.payload
        if not isinstance(payload, TablePayload) or payload.rows < 1 or payload.columns < 1:
            return add_stand_in(shapes, shape_json)

        graphic_frame = shapes.add_table(payload.rows, payload.columns, *_frame_box(shape_json))
        table = graphic_frame.table

        for index, width in enumerate(payload.column_widths[: payload.columns]):
            table.columns[index].width = Emu(points_to_emu(width))
        for index, height in enumerate(payload.row_heights[: payload.rows]):
            table.rows[index].height = Emu(points_to_emu(height))

        for r, row in enumerate(payload.cells[: payload.rows]):
            for c, cell_json in enumerate(row[: payload.columns]):
                if cell_json.is_spanned:
                    continue
                cell = table.cell(r, c)
                cell.text = cell_json.text
                if cell_json.row_span > 1 or cell_json.col_span > 1:
                    last_row = min(r + cell_json.row_span, payload.rows) - 1
                    last_col = min(c + cell_json.col_span, payload.columns) - 1
                    cell.merge(table.cell(last_row, last_col))

        table.first_row = payload.first_row
        table.first_col = payload.first_col
        table.horz_banding = payload.horz_banding
        return graphic_frame


class SmartArtExtension(ShapeExtension):
    """SmartArt is read from its diagram data part; it is rebuilt as plain text."""

    extension_type = ExtensionType.SMART_ART

    def extract(self, shape: Any, context: ExtensionContext) -> SmartArtPayload:
        rel_ids = xpath(xml_element(shape), ".//*[local-name()='relIds']")
        if not rel_ids:
            return SmartArtPayload()

        rel_element = rel_ids[0]
        part = safe_get(shape, "part")
        related_part = getattr(part, "related_part", None)

        texts: List[str] = []
        node_count = 0
        data_part = safe_call(related_part, rel_element.get(f"{{{R_NAMESPACE}}}dm"))
        blob = safe_get(data_part, "blob")
        if blob:
            root = etree.fromstring(blob)
            for point in root.xpath("//*[local-name()='pt']"):
                if point.get("type") not in (None, "node"):
                    continue
                node_count += 1
                text = "".join(point.xpath(".//*[local-name()='t']/text()")).strip()
                if text:
                    texts.append(text)

        layout = None
        layout_part = safe_call(related_part, rel_element.get(f"{{{R_NAMESPACE}}}lo"))
        layout_blob = safe_get(layout_part, "blob")
        if layout_blob:
            layout = etree.fromstring(layout_blob).get("uniqueId")

        return SmartArtPayload(layout=layout, node_count=node_count, texts=texts)

    def reconstruct(self, shape_json: UniversalShape, shapes: Any, context: ExtensionContext) -> Any:
        payload = shape_json.payload
        texts = payload.texts if isinstance(payload, SmartArtPayload) else []
        textbox = shapes.add_textbox(*_frame_box(shape_json))
        textbox.text_frame.text = "\n".join(texts)
        return textbox


class GroupExtension(ShapeExtension):
    extension_type = ExtensionType.GROUP

    def extract(self, shape: Any, context: ExtensionContext) -> GroupPayload:
        if context.depth >= context.max_depth:
            context.warnings.append(
                f"Group '{safe_get(shape, 'name', '')}' exceeds nesting depth {context.max_depth}, children skipped"
            )
            return GroupPayload()

        children = []
        for child in safe_list(shape, "shapes"):
            child_json = context.extract_child(
                child,
                depth=context.depth + 1,
                warnings=context.warnings,
            )
            if child_json is not None:
                children.append(child_json)
        return GroupPayload(shapes=children)

    def reconstruct(self, shape_json: UniversalShape, shapes: Any, context: ExtensionContext) -> Any:
        payload = shape_json.payload
        group = shapes.add_group_shape()
        if isinstance(payload, GroupPayload):
            for child in payload.shapes:
                context.build_child(child, group.shapes)
        return group


class UnsupportedExtension(ShapeExtension):
    """Fallback for keys without a registered handler."""

    def extract(self, shape: Any, context: ExtensionContext) -> UnsupportedPayload:
        return UnsupportedPayload(
            engine_type=enum_name(safe_get(shape, "shape_type")),
            reason="no extension registered for this shape kind",
        )

    def reconstruct(self, shape_json: UniversalShape, shapes: Any, context: ExtensionContext) -> Any:
        logger.warning(f"No reconstruction for shape '{shape_json.name}' ({shape_json.shape_type.value}), using stand-in")
        text = shape_json.text_frame.text if shape_json.text_frame else None
        return add_stand_in(shapes, shape_json, text)


def default_extensions() -> Dict[ExtensionType, ShapeExtension]:
    return {
        ExtensionType.CHART: ChartExtension(),
        ExtensionType.TABLE: TableExtension(),
        ExtensionType.SMART_ART: SmartArtExtension(),
        ExtensionType.GROUP: GroupExtension(),
    }


class ExtensionRegistry:
    """Typed map from ExtensionType to handler with an unsupported fallback."""

    def __init__(self, handlers: Optional[Dict[ExtensionType, ShapeExtension]] = None):
        self._handlers: Dict[ExtensionType, ShapeExtension] = (
            dict(handlers) if handlers is not None else default_extensions()
        )
        self._fallback = UnsupportedExtension()

    def register(self, key: Any, handler: ShapeExtension) -> None:
        """Register a handler. Raises ValueError for keys outside ExtensionType."""
        self._handlers[ExtensionType(key)] = handler

    def get(self, key: Any) -> ShapeExtension:
        try:
            extension_type = ExtensionType(key)
        except ValueError:
            return self._fallback
        return self._handlers.get(extension_type, self._fallback)

    def supported_types(self) -> List[ExtensionType]:
        return list(self._handlers.keys())

    @staticmethod
    def for_shape_type(shape_type: ShapeType) -> Optional[ExtensionType]:
        return EXTENSION_FOR_SHAPE.get(shape_type)


_default_registry: Optional[ExtensionRegistry] = None


def get_extension_registry() -> ExtensionRegistry:
    """Get the process-wide default registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ExtensionRegistry()
    return _default_registry
