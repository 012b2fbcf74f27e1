"""
Universal Schema

Pydantic models for the engine-independent presentation representation.
Lengths are in points, colors are "#RRGGBB" strings.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

SCHEMA_VERSION = "1.0"
GENERATOR = "universal-schema-extractor"


class ShapeType(str, Enum):
    """Fixed enumeration of shape kinds."""
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"
    LINE = "line"
    TEXTBOX = "textbox"
    PICTURE = "picture"
    VIDEO = "video"
    AUDIO = "audio"
    CHART = "chart"
    TABLE = "table"
    SMART_ART = "smartArt"
    OLE_OBJECT = "oleObject"
    GROUP = "group"
    CONNECTOR = "connector"
    AUTO_SHAPE = "autoShape"
    PLACEHOLDER = "placeholder"
    FREEFORM = "freeform"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------

class Position(BaseModel):
    """Position of a shape on a slide in points."""
    x: float = Field(default=0.0, description="Horizontal position from left edge of slide")
    y: float = Field(default=0.0, description="Vertical position from top edge of slide")


class Size(BaseModel):
    """Dimensions of a shape in points."""
    width: float = Field(default=0.0, description="Width of the shape")
    height: float = Field(default=0.0, description="Height of the shape")


class Geometry(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    rotation: float = Field(default=0.0, description="Clockwise rotation in degrees")


class GradientStop(BaseModel):
    position: float = Field(description="Stop position between 0.0 and 1.0")
    color: str


class FillFormat(BaseModel):
    fill_type: str = Field(
        default="NotDefined",
        description="NotDefined, Solid, Gradient, Pattern, Picture, NoFill or Group",
    )
    color: Optional[str] = None
    gradient_stops: List[GradientStop] = Field(default_factory=list)
    gradient_angle: Optional[float] = None
    pattern: Optional[str] = None
    fore_color: Optional[str] = None
    back_color: Optional[str] = None


class LineFormat(BaseModel):
    color: Optional[str] = None
    width: Optional[float] = Field(default=None, description="Line width in points")
    dash_style: Optional[str] = None
    fill_type: Optional[str] = None


class EffectFormat(BaseModel):
    has_shadow: bool = False
    shadow_inherited: Optional[bool] = None
    effects: List[str] = Field(default_factory=list, description="Names of effects present on the shape")


class ThreeDFormat(BaseModel):
    depth: Optional[float] = None
    contour_width: Optional[float] = None
    extrusion_height: Optional[float] = None
    bevel_top: Optional[str] = None
    light_rig: Optional[str] = None
    camera: Optional[str] = None


class Hyperlink(BaseModel):
    target_url: Optional[str] = None
    tooltip: Optional[str] = None
    action_type: Optional[str] = None
    target_slide_id: Optional[int] = Field(default=None, description="slide_id of the jump target")


class FontFormat(BaseModel):
    """Font styling properties for a text portion."""
    name: str = Field(default="Arial", description="Font family name")
    size: float = Field(default=12, description="Font size in points")
    bold: bool = False
    italic: bool = False
    underline: bool = False
    color: Optional[str] = None


class Portion(BaseModel):
    text: str = ""
    font: FontFormat = Field(default_factory=FontFormat)
    hyperlink: Optional[Hyperlink] = None


class Paragraph(BaseModel):
    text: str = ""
    alignment: Optional[str] = None
    level: int = 0
    space_before: Optional[float] = None
    space_after: Optional[float] = None
    line_spacing: Optional[float] = None
    portions: List[Portion] = Field(default_factory=list)


class TextFrame(BaseModel):
    text: str = ""
    paragraphs: List[Paragraph] = Field(default_factory=list)
    word_wrap: Optional[bool] = None
    auto_size: Optional[str] = None
    vertical_anchor: Optional[str] = None
    margin_left: Optional[float] = None
    margin_right: Optional[float] = None
    margin_top: Optional[float] = None
    margin_bottom: Optional[float] = None


class PlaceholderInfo(BaseModel):
    idx: Optional[int] = None
    type: Optional[str] = None
    name: Optional[str] = None
    shape_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Type-specific payloads (tagged by ``kind``)
# ---------------------------------------------------------------------------

class ChartSeries(BaseModel):
    """A single data series in a chart."""
    name: str = Field(default="", description="Series name/label")
    values: List[Optional[float]] = Field(default_factory=list, description="Data points in the series")


class ChartAxis(BaseModel):
    """Category or value axis of a chart."""
    axis_type: Literal["category", "value"]
    title: Optional[str] = None
    visible: bool = True
    minimum: Optional[float] = Field(default=None, description="Explicit scale minimum; None when automatic")
    maximum: Optional[float] = Field(default=None, description="Explicit scale maximum; None when automatic")
    number_format: Optional[str] = None
    has_major_gridlines: bool = False


class ChartPayload(BaseModel):
    kind: Literal["chart"] = "chart"
    chart_type: Optional[str] = None
    title: Optional[str] = None
    categories: List[Union[str, float]] = Field(default_factory=list)
    series: List[ChartSeries] = Field(default_factory=list)
    has_legend: bool = False
    legend_position: Optional[str] = None
    axes: List[ChartAxis] = Field(default_factory=list)


class TableCell(BaseModel):
    text: str = ""
    row_span: int = 1
    col_span: int = 1
    is_spanned: bool = False
    fill_color: Optional[str] = None
    font: Optional[FontFormat] = None


class TablePayload(BaseModel):
    kind: Literal["table"] = "table"
    rows: int = 0
    columns: int = 0
    column_widths: List[float] = Field(default_factory=list)
    row_heights: List[float] = Field(default_factory=list)
    cells: List[List[TableCell]] = Field(default_factory=list)
    first_row: bool = False
    first_col: bool = False
    horz_banding: bool = False


class GroupPayload(BaseModel):
    kind: Literal["group"] = "group"
    shapes: List["UniversalShape"] = Field(default_factory=list)


class PicturePayload(BaseModel):
    kind: Literal["picture"] = "picture"
    image_format: Optional[str] = None
    content_type: Optional[str] = None
    pixel_size: Optional[List[int]] = None
    image_hash: Optional[str] = Field(default=None, description="SHA1 of the image bytes")
    crop: Dict[str, float] = Field(default_factory=dict)
    image_base64: Optional[str] = Field(default=None, description="Embedded image bytes, only when requested")


class MediaPayload(BaseModel):
    kind: Literal["media"] = "media"
    media_type: Literal["video", "audio"] = "video"
    content_type: Optional[str] = None
    is_linked: bool = False
    link_target: Optional[str] = None


class OlePayload(BaseModel):
    kind: Literal["ole"] = "ole"
    prog_id: Optional[str] = None
    is_embedded: bool = True
    show_as_icon: Optional[bool] = None


class SmartArtPayload(BaseModel):
    kind: Literal["smartArt"] = "smartArt"
    layout: Optional[str] = None
    node_count: int = 0
    texts: List[str] = Field(default_factory=list)


class ConnectorPayload(BaseModel):
    kind: Literal["connector"] = "connector"
    begin_x: Optional[float] = None
    begin_y: Optional[float] = None
    end_x: Optional[float] = None
    end_y: Optional[float] = None


class AutoShapePayload(BaseModel):
    kind: Literal["autoShape"] = "autoShape"
    auto_shape_type: Optional[str] = None


class UnsupportedPayload(BaseModel):
    kind: Literal["unsupported"] = "unsupported"
    engine_type: Optional[str] = None
    reason: Optional[str] = None


ShapePayload = Annotated[
    Union[
        ChartPayload,
        TablePayload,
        GroupPayload,
        PicturePayload,
        MediaPayload,
        OlePayload,
        SmartArtPayload,
        ConnectorPayload,
        AutoShapePayload,
        UnsupportedPayload,
    ],
    Field(discriminator="kind"),
]

# Payload kinds each shape type may carry. "unsupported" is accepted everywhere.
PAYLOAD_KINDS: Dict[ShapeType, tuple] = {
    ShapeType.RECTANGLE: ("autoShape",),
    ShapeType.ELLIPSE: ("autoShape",),
    ShapeType.AUTO_SHAPE: ("autoShape",),
    ShapeType.LINE: ("connector", "autoShape"),
    ShapeType.CONNECTOR: ("connector",),
    ShapeType.TEXTBOX: ("autoShape",),
    ShapeType.PICTURE: ("picture",),
    ShapeType.VIDEO: ("media",),
    ShapeType.AUDIO: ("media",),
    ShapeType.CHART: ("chart",),
    ShapeType.TABLE: ("table",),
    ShapeType.SMART_ART: ("smartArt",),
    ShapeType.OLE_OBJECT: ("ole",),
    ShapeType.GROUP: ("group",),
    ShapeType.PLACEHOLDER: ("autoShape", "picture", "chart", "table"),
    ShapeType.FREEFORM: (),
    ShapeType.UNKNOWN: (),
}


class UniversalShape(BaseModel):
    shape_id: Optional[int] = None
    name: str = ""
    shape_type: ShapeType = ShapeType.UNKNOWN
    geometry: Geometry = Field(default_factory=Geometry)
    fill: Optional[FillFormat] = None
    line: Optional[LineFormat] = None
    effects: Optional[EffectFormat] = None
    three_d: Optional[ThreeDFormat] = None
    text_frame: Optional[TextFrame] = None
    hyperlink: Optional[Hyperlink] = None
    alt_text: Optional[str] = None
    hidden: bool = False
    placeholder: Optional[PlaceholderInfo] = None
    payload: Optional[ShapePayload] = None

    def iter_shapes(self):
        """Yield this shape and every nested group member, depth first."""
        yield self
        if isinstance(self.payload, GroupPayload):
            for child in self.payload.shapes:
                yield from child.iter_shapes()


GroupPayload.model_rebuild()
UniversalShape.model_rebuild()


# ---------------------------------------------------------------------------
# Slide level
# ---------------------------------------------------------------------------

class Background(BaseModel):
    fill: Optional[FillFormat] = None
    follows_master: Optional[bool] = None


class Transition(BaseModel):
    type: Optional[str] = None
    speed: Optional[str] = None
    duration_ms: Optional[int] = None
    advance_on_click: bool = True
    advance_after_ms: Optional[int] = None
    has_sound: bool = False


class Animation(BaseModel):
    effect_class: Optional[str] = Field(default=None, description="entr, exit, emph, path, verb or mediacall")
    preset_id: Optional[int] = None
    target_shape_id: Optional[int] = None
    trigger: Optional[str] = Field(default=None, description="clickEffect, withEffect or afterEffect")
    delay_ms: Optional[int] = None
    duration_ms: Optional[int] = None


class SlideTiming(BaseModel):
    has_timeline: bool = False
    effect_count: int = 0
    interactive_sequence_count: int = 0


class Comment(BaseModel):
    author: Optional[str] = None
    author_id: Optional[int] = None
    text: str = ""
    created: Optional[str] = None
    position: Optional[Position] = None


class UniversalSlide(BaseModel):
    slide_id: int = Field(ge=1, description="Positive slide identifier")
    slide_index: int = Field(default=0, ge=0, description="0-based index of slide in presentation")
    name: Optional[str] = None
    slide_type: str = "Slide"
    layout_name: Optional[str] = None
    shapes: List[UniversalShape] = Field(default_factory=list)
    background: Optional[Background] = None
    transition: Optional[Transition] = None
    timing: Optional[SlideTiming] = None
    animations: List[Animation] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    placeholders: List[PlaceholderInfo] = Field(default_factory=list)
    notes: Optional[str] = None
    hidden: bool = False
    warnings: List[str] = Field(default_factory=list)

    def iter_shapes(self):
        for shape in self.shapes:
            yield from shape.iter_shapes()


# ---------------------------------------------------------------------------
# Presentation level
# ---------------------------------------------------------------------------

class DocumentProperties(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    keywords: Optional[str] = None
    category: Optional[str] = None
    comments: Optional[str] = None
    last_modified_by: Optional[str] = None
    revision: Optional[int] = None
    created: Optional[str] = None
    modified: Optional[str] = None


class SecurityInfo(BaseModel):
    is_encrypted: bool = False
    is_write_protected: bool = False
    has_macros: bool = False


class SlideSize(BaseModel):
    width: float
    height: float
    orientation: Literal["landscape", "portrait"] = "landscape"


class LayoutInfo(BaseModel):
    index: int
    name: Optional[str] = None
    master_index: Optional[int] = None
    placeholder_count: int = 0


class MasterInfo(BaseModel):
    index: int
    name: Optional[str] = None
    layout_count: int = 0


class PresentationMetadata(BaseModel):
    slide_count: int = 0
    shape_count: int = 0
    image_count: int = 0
    chart_count: int = 0
    table_count: int = 0
    animation_count: int = 0
    total_file_size: Optional[int] = None
    extracted_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    processing_time_ms: Optional[int] = None


class UniversalPresentation(BaseModel):
    version: str = SCHEMA_VERSION
    generator: str = GENERATOR
    document_properties: DocumentProperties = Field(default_factory=DocumentProperties)
    security: SecurityInfo = Field(default_factory=SecurityInfo)
    slide_size: Optional[SlideSize] = None
    master_slides: List[MasterInfo] = Field(default_factory=list)
    layout_slides: List[LayoutInfo] = Field(default_factory=list)
    slides: List[UniversalSlide] = Field(min_length=1)
    metadata: PresentationMetadata = Field(default_factory=PresentationMetadata)

    def to_json(self, **kwargs: Any) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True, **kwargs)
