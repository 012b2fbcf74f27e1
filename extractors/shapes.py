"""
Shape extraction.

Resolves the shape kind, applies every format extractor under its own guard
and delegates type-specific payloads to the extension registry. Groups
recurse through the same routine up to a fixed depth.
"""

import base64
import logging
from typing import Any, Callable, List, Optional

from core.config import MAX_GROUP_DEPTH
from extractors.extensions import (
    ALL_EXTENSIONS,
    ExtensionContext,
    ExtensionRegistry,
    ExtensionType,
    get_extension_registry,
)
from extractors.formats import (
    extract_effects,
    extract_fill,
    extract_geometry,
    extract_hyperlink,
    extract_line,
    extract_three_d,
)
from extractors.text import extract_text_frame
from utils.accessors import (
    emu_to_points,
    enum_name,
    local_name,
    safe_call,
    safe_get,
    xml_element,
    xpath,
)
from utils.schemas import (
    AutoShapePayload,
    ConnectorPayload,
    MediaPayload,
    OlePayload,
    PicturePayload,
    PlaceholderInfo,
    ShapeType,
    UniversalShape,
)

logger = logging.getLogger(__name__)

DIAGRAM_URI_MARKER = "drawingml/2006/diagram"

_NV_PROPS = "./*[starts-with(local-name(), 'nv')]/*[local-name()='cNvPr']"
_MEDIA_FILE = "./*[local-name()='nvPicPr']/*[local-name()='nvPr']/*[local-name()='{}']"

# MSO_SHAPE_TYPE member name -> shape kind, for shapes not resolved structurally
ENGINE_SHAPE_TYPES = {
    "GROUP": ShapeType.GROUP,
    "CHART": ShapeType.CHART,
    "TABLE": ShapeType.TABLE,
    "DIAGRAM": ShapeType.SMART_ART,
    "SMART_ART": ShapeType.SMART_ART,
    "EMBEDDED_OLE_OBJECT": ShapeType.OLE_OBJECT,
    "LINKED_OLE_OBJECT": ShapeType.OLE_OBJECT,
    "OLE_CONTROL_OBJECT": ShapeType.OLE_OBJECT,
    "PICTURE": ShapeType.PICTURE,
    "LINKED_PICTURE": ShapeType.PICTURE,
    "MEDIA": ShapeType.VIDEO,
    "TEXT_BOX": ShapeType.TEXTBOX,
    "PLACEHOLDER": ShapeType.PLACEHOLDER,
    "FREEFORM": ShapeType.FREEFORM,
    "LINE": ShapeType.LINE,
    "AUTO_SHAPE": ShapeType.AUTO_SHAPE,
    "CALLOUT": ShapeType.AUTO_SHAPE,
}

AUTO_SHAPE_KINDS = {
    "RECTANGLE": ShapeType.RECTANGLE,
    "OVAL": ShapeType.ELLIPSE,
    "LINE_INVERSE": ShapeType.LINE,
}


def media_kind(shape: Any) -> Optional[str]:
    """'video', 'audio' or None for a picture-like shape."""
    element = xml_element(shape)
    if xpath(element, _MEDIA_FILE.format("videoFile")):
        return "video"
    if xpath(element, _MEDIA_FILE.format("audioFile")):
        return "audio"

    media_type = enum_name(safe_get(shape, "media_type"))
    if media_type == "MOVIE":
        return "video"
    if media_type == "SOUND":
        return "audio"
    return None


def is_smart_art(shape: Any) -> bool:
    uris = xpath(xml_element(shape), ".//*[local-name()='graphicData']/@uri")
    return any(DIAGRAM_URI_MARKER in str(uri) for uri in uris)


def detect_shape_type(shape: Any) -> ShapeType:
    """
    Resolve the Universal Schema kind of an engine shape.

    Structural checks (XML tag, chart/table flags, media links) win over the
    engine's own shape_type, which raises for some shapes.
    """
    tag = local_name(xml_element(shape))
    engine_type = enum_name(safe_get(shape, "shape_type"))

    if tag == "grpSp" or engine_type == "GROUP":
        return ShapeType.GROUP
    if safe_get(shape, "has_chart") is True:
        return ShapeType.CHART
    if safe_get(shape, "has_table") is True:
        return ShapeType.TABLE
    if is_smart_art(shape):
        return ShapeType.SMART_ART
    if tag == "cxnSp":
        return ShapeType.CONNECTOR
    if tag == "pic" or engine_type in ("PICTURE", "LINKED_PICTURE", "MEDIA"):
        kind = media_kind(shape)
        if kind == "video":
            return ShapeType.VIDEO
        if kind == "audio":
            return ShapeType.AUDIO
        if engine_type != "PLACEHOLDER":
            return ShapeType.PICTURE

    if engine_type in ("AUTO_SHAPE", "CALLOUT"):
        auto_shape_type = enum_name(safe_get(shape, "auto_shape_type"))
        return AUTO_SHAPE_KINDS.get(auto_shape_type, ShapeType.AUTO_SHAPE)

    return ENGINE_SHAPE_TYPES.get(engine_type, ShapeType.UNKNOWN)


def extract_placeholder(shape: Any) -> Optional[PlaceholderInfo]:
    if safe_get(shape, "is_placeholder") is not True:
        return None
    return PlaceholderInfo(
        idx=safe_get(shape, "placeholder_format.idx"),
        type=enum_name(safe_get(shape, "placeholder_format.type")),
        name=safe_get(shape, "name"),
        shape_id=safe_get(shape, "shape_id"),
    )


def _non_visual_properties(shape: Any) -> Any:
    nodes = xpath(xml_element(shape), _NV_PROPS)
    return nodes[0] if nodes else None


class ShapeExtractor:
    """
    Extracts one engine shape into a UniversalShape.

    Args:
        registry: Extension registry for chart/table/SmartArt/group payloads
        extensions: Extension types enabled for this run (default: all)
        max_depth: Group nesting limit
        embed_images: Include picture bytes as base64 in picture payloads
    """

    def __init__(
        self,
        registry: Optional[ExtensionRegistry] = None,
        extensions: Optional[List[ExtensionType]] = None,
        max_depth: int = MAX_GROUP_DEPTH,
        embed_images: bool = False,
    ):
        self.registry = registry or get_extension_registry()
        self.extensions = set(ALL_EXTENSIONS if extensions is None else extensions)
        self.max_depth = max_depth
        self.embed_images = embed_images

    def _guarded(self, label: str, shape_name: str, warnings: List[str], func: Callable, *args):
        try:
            return func(*args)
        except Exception as e:
            warnings.append(f"Shape '{shape_name}': {label} extraction failed: {e}")
            logger.debug(f"{label} extraction failed for '{shape_name}': {e}")
            return None

    def extract(
        self,
        shape: Any,
        depth: int = 0,
        warnings: Optional[List[str]] = None,
    ) -> UniversalShape:
        """
        Extract a single shape.

        Args:
            shape: Engine shape
            depth: Group nesting depth of this shape
            warnings: List collecting recoverable problems

        Returns:
            UniversalShape with every readable property populated
        """
        warnings = warnings if warnings is not None else []
        name = safe_get(shape, "name", "") or ""
        shape_type = detect_shape_type(shape)
        shape_id = safe_get(shape, "shape_id")

        result = UniversalShape(
            shape_id=shape_id if isinstance(shape_id, int) else None,
            name=name,
            shape_type=shape_type,
            geometry=self._guarded("geometry", name, warnings, extract_geometry, shape) or extract_geometry(None),
        )

        result.fill = self._guarded("fill", name, warnings, extract_fill, safe_get(shape, "fill"))
        result.line = self._guarded("line", name, warnings, extract_line, safe_get(shape, "line"))
        result.effects = self._guarded("effect", name, warnings, extract_effects, shape)
        result.three_d = self._guarded("3-D", name, warnings, extract_three_d, shape)
        if safe_get(shape, "has_text_frame") is True:
            result.text_frame = self._guarded(
                "text", name, warnings, extract_text_frame, safe_get(shape, "text_frame")
            )
        result.hyperlink = self._guarded(
            "hyperlink", name, warnings, extract_hyperlink, safe_get(shape, "click_action")
        )
        result.placeholder = self._guarded("placeholder", name, warnings, extract_placeholder, shape)

        c_nv_pr = _non_visual_properties(shape)
        if c_nv_pr is not None:
            result.alt_text = safe_call(c_nv_pr.get, "descr") or None
            result.hidden = safe_call(c_nv_pr.get, "hidden") in ("1", "true")

        result.payload = self._payload(shape, result, depth, warnings)
        return result

    def extract_safely(
        self,
        shape: Any,
        depth: int = 0,
        warnings: Optional[List[str]] = None,
    ) -> Optional[UniversalShape]:
        """extract() that records a warning and returns None instead of raising."""
        warnings = warnings if warnings is not None else []
        try:
            return self.extract(shape, depth=depth, warnings=warnings)
        except Exception as e:
            name = safe_get(shape, "name", "") or "<unnamed>"
            warnings.append(f"Shape '{name}' skipped: {e}")
            logger.warning(f"Shape '{name}' skipped: {e}")
            return None

    def _payload(self, shape: Any, result: UniversalShape, depth: int, warnings: List[str]):
        shape_type = result.shape_type
        extension_type = ExtensionRegistry.for_shape_type(shape_type)

        if extension_type is not None:
            if extension_type not in self.extensions:
                return None
            context = ExtensionContext(
                depth=depth,
                warnings=warnings,
                extract_child=self.extract_safely,
                max_depth=self.max_depth,
            )
            try:
                return self.registry.get(extension_type).extract(shape, context)
            except Exception as e:
                warnings.append(f"Shape '{result.name}' ({shape_type.value}): {extension_type.value} extension failed: {e}")
                logger.warning(f"{extension_type.value} extension failed for '{result.name}': {e}")
                return None

        builder = {
            ShapeType.PICTURE: self._picture_payload,
            ShapeType.VIDEO: self._media_payload,
            ShapeType.AUDIO: self._media_payload,
            ShapeType.OLE_OBJECT: self._ole_payload,
            ShapeType.CONNECTOR: self._connector_payload,
            ShapeType.RECTANGLE: self._auto_shape_payload,
            ShapeType.ELLIPSE: self._auto_shape_payload,
            ShapeType.AUTO_SHAPE: self._auto_shape_payload,
        }.get(shape_type)
        if builder is None:
            return None
        return self._guarded(f"{shape_type.value} payload", result.name, warnings, builder, shape, shape_type)

    def _picture_payload(self, shape: Any, shape_type: ShapeType) -> PicturePayload:
        image = safe_get(shape, "image")
        pixel_size = safe_get(image, "size")

        crop = {}
        for side in ("left", "top", "right", "bottom"):
            value = safe_get(shape, f"crop_{side}")
            if isinstance(value, float) and value:
                crop[side] = value

        image_base64 = None
        if self.embed_images:
            blob = safe_get(image, "blob")
            if blob:
                image_base64 = base64.b64encode(blob).decode("ascii")

        return PicturePayload(
            image_format=safe_get(image, "ext"),
            content_type=safe_get(image, "content_type"),
            pixel_size=list(pixel_size) if isinstance(pixel_size, tuple) else None,
            image_hash=safe_get(image, "sha1"),
            crop=crop,
            image_base64=image_base64,
        )

    def _media_payload(self, shape: Any, shape_type: ShapeType) -> MediaPayload:
        media_type = "audio" if shape_type == ShapeType.AUDIO else "video"
        links = xpath(
            xml_element(shape),
            _MEDIA_FILE.format(f"{media_type}File") + "/@*[local-name()='link']",
        )
        relationship = None
        if links:
            relationship = safe_call(getattr(safe_get(shape, "part.rels"), "get", None), str(links[0]))

        is_linked = safe_get(relationship, "is_external") is True
        return MediaPayload(
            media_type=media_type,
            content_type=None if is_linked else safe_get(relationship, "target_part.content_type"),
            is_linked=is_linked,
            link_target=safe_get(relationship, "target_ref") if is_linked else None,
        )

    def _ole_payload(self, shape: Any, shape_type: ShapeType) -> OlePayload:
        show_as_icon = safe_get(shape, "ole_format.show_as_icon")
        return OlePayload(
            prog_id=safe_get(shape, "ole_format.prog_id"),
            is_embedded=enum_name(safe_get(shape, "shape_type")) != "LINKED_OLE_OBJECT",
            show_as_icon=show_as_icon if isinstance(show_as_icon, bool) else None,
        )

    def _connector_payload(self, shape: Any, shape_type: ShapeType) -> ConnectorPayload:
        return ConnectorPayload(
            begin_x=emu_to_points(safe_get(shape, "begin_x"), default=None),
            begin_y=emu_to_points(safe_get(shape, "begin_y"), default=None),
            end_x=emu_to_points(safe_get(shape, "end_x"), default=None),
            end_y=emu_to_points(safe_get(shape, "end_y"), default=None),
        )

    def _auto_shape_payload(self, shape: Any, shape_type: ShapeType) -> AutoShapePayload:
        return AutoShapePayload(auto_shape_type=enum_name(safe_get(shape, "auto_shape_type")))
