"""
Format extractors.

Stateless mappers from engine format objects to Universal Schema
sub-types. Each one returns None when the capability is absent altogether
and otherwise fills what it can, defaulting any property whose accessor is
missing or raises.
"""

import logging
from typing import Any, List, Optional

from utils.accessors import (
    emu_to_points,
    enum_name,
    safe_call,
    safe_get,
    safe_list,
    xml_element,
    xpath,
    local_name,
)
from utils.colors import DEFAULT_COLOR, extract_color, normalize_color
from utils.schemas import (
    EffectFormat,
    FillFormat,
    Geometry,
    GradientStop,
    Hyperlink,
    LineFormat,
    ThreeDFormat,
)

logger = logging.getLogger(__name__)

# MSO_FILL_TYPE member name -> schema fill type
FILL_TYPE_NAMES = {
    "SOLID": "Solid",
    "GRADIENT": "Gradient",
    "PATTERNED": "Pattern",
    "PICTURE": "Picture",
    "TEXTURED": "Picture",
    "BACKGROUND": "NoFill",
    "GROUP": "Group",
}

# DrawingML effect element -> schema effect name
EFFECT_NAMES = {
    "outerShdw": "outerShadow",
    "innerShdw": "innerShadow",
    "prstShdw": "presetShadow",
    "glow": "glow",
    "softEdge": "softEdge",
    "reflection": "reflection",
    "blur": "blur",
}

_SHAPE_PROPERTIES = "./*[local-name()='spPr' or local-name()='grpSpPr']"


def _first(items: List[Any]) -> Any:
    return items[0] if items else None


def _attr(element: Any, name: str) -> Optional[str]:
    if element is None:
        return None
    return safe_call(getattr(element, "get", None), name)


def _emu_attr(element: Any, name: str) -> Optional[float]:
    value = _attr(element, name)
    if value is None:
        return None
    return emu_to_points(value, default=None)


def _has_line_properties(line: Any) -> bool:
    try:
        return getattr(line, "_ln", True) is not None
    except Exception:
        return False


def fill_type_name(fill: Any) -> str:
    type_name = enum_name(safe_get(fill, "type"))
    return FILL_TYPE_NAMES.get(type_name, "NotDefined")


def extract_geometry(shape: Any) -> Geometry:
    """Position, size and rotation of a shape in points."""
    rotation = safe_get(shape, "rotation", 0.0)
    try:
        rotation = float(rotation)
    except (TypeError, ValueError):
        rotation = 0.0

    return Geometry(
        x=emu_to_points(safe_get(shape, "left")),
        y=emu_to_points(safe_get(shape, "top")),
        width=emu_to_points(safe_get(shape, "width")),
        height=emu_to_points(safe_get(shape, "height")),
        rotation=rotation,
    )


def extract_fill(fill: Any) -> Optional[FillFormat]:
    """
    Map a python-pptx FillFormat.

    Args:
        fill: FillFormat (or None)

    Returns:
        FillFormat with type-specific fields, None when there is no fill object
    """
    if fill is None:
        return None

    result = FillFormat(fill_type=fill_type_name(fill))

    if result.fill_type == "Solid":
        # fore_color raises TypeError on non-solid fills, so only read it here
        result.color = extract_color(safe_get(fill, "fore_color")) or DEFAULT_COLOR

    elif result.fill_type == "Gradient":
        for stop in safe_list(fill, "gradient_stops"):
            position = safe_get(stop, "position", 0.0)
            result.gradient_stops.append(
                GradientStop(
                    position=float(position) if isinstance(position, (int, float)) else 0.0,
                    color=normalize_color(safe_get(stop, "color")),
                )
            )
        angle = safe_get(fill, "gradient_angle")
        if isinstance(angle, (int, float)):
            result.gradient_angle = float(angle)
        if result.gradient_stops:
            result.color = result.gradient_stops[0].color

    elif result.fill_type == "Pattern":
        result.pattern = enum_name(safe_get(fill, "pattern"))
        result.fore_color = extract_color(safe_get(fill, "fore_color"))
        result.back_color = extract_color(safe_get(fill, "back_color"))

    return result


def extract_line(line: Any) -> Optional[LineFormat]:
    """Map a python-pptx LineFormat without mutating it."""
    if line is None:
        return None

    # LineFormat.fill adds an <a:ln> when the shape has none
    line_fill = safe_get(line, "fill") if _has_line_properties(line) else None
    fill_type = fill_type_name(line_fill) if line_fill is not None else None

    color = None
    # LineFormat.color forces a solid fill on access, read through the fill instead
    if fill_type == "Solid":
        color = extract_color(safe_get(line_fill, "fore_color")) or DEFAULT_COLOR

    width = safe_get(line, "width")
    return LineFormat(
        color=color,
        width=emu_to_points(width) if width else None,
        dash_style=enum_name(safe_get(line, "dash_style")),
        fill_type=fill_type,
    )


def extract_effects(shape: Any) -> Optional[EffectFormat]:
    """Shadow state plus the names of effects in the shape's effect list."""
    shadow = safe_get(shape, "shadow")
    effect_elements = xpath(
        xml_element(shape), f"{_SHAPE_PROPERTIES}/*[local-name()='effectLst']/*"
    )
    names = [EFFECT_NAMES.get(local_name(el), local_name(el)) for el in effect_elements]
    names = [name for name in names if name]

    if shadow is None and not names:
        return None

    inherited = safe_get(shadow, "inherit")
    has_shadow = any(name.endswith("Shadow") for name in names)
    if not names and inherited is False:
        # an explicit empty effect list disables the inherited shadow
        has_shadow = False

    return EffectFormat(
        has_shadow=has_shadow,
        shadow_inherited=inherited if isinstance(inherited, bool) else None,
        effects=names,
    )


def extract_three_d(shape: Any) -> Optional[ThreeDFormat]:
    """3-D bevel/extrusion and scene settings, None when the shape is flat."""
    element = xml_element(shape)
    sp3d = _first(xpath(element, f"{_SHAPE_PROPERTIES}/*[local-name()='sp3d']"))
    scene = _first(xpath(element, f"{_SHAPE_PROPERTIES}/*[local-name()='scene3d']"))
    if sp3d is None and scene is None:
        return None

    bevel = _first(xpath(sp3d, "./*[local-name()='bevelT']")) if sp3d is not None else None
    camera = _first(xpath(scene, "./*[local-name()='camera']")) if scene is not None else None
    light_rig = _first(xpath(scene, "./*[local-name()='lightRig']")) if scene is not None else None

    return ThreeDFormat(
        depth=_emu_attr(sp3d, "z"),
        contour_width=_emu_attr(sp3d, "contourW"),
        extrusion_height=_emu_attr(sp3d, "extrusionH"),
        bevel_top=(_attr(bevel, "prst") or "circle") if bevel is not None else None,
        light_rig=_attr(light_rig, "rig"),
        camera=_attr(camera, "prst"),
    )


def extract_hyperlink(click_action: Any) -> Optional[Hyperlink]:
    """Map a shape's click action. None when it does nothing."""
    if click_action is None:
        return None

    address = safe_get(click_action, "hyperlink.address")
    action = enum_name(safe_get(click_action, "action"))
    if not address and action in (None, "NONE"):
        return None

    hlink = safe_get(click_action, "_hlink")
    target_slide = safe_get(click_action, "target_slide")

    return Hyperlink(
        target_url=address,
        tooltip=_attr(hlink, "tooltip"),
        action_type=action,
        target_slide_id=safe_get(target_slide, "slide_id"),
    )


def extract_run_hyperlink(run: Any) -> Optional[Hyperlink]:
    address = safe_get(run, "hyperlink.address")
    if not address:
        return None
    return Hyperlink(target_url=address, action_type="HYPERLINK")
