"""
Color normalization.

All colors in the Universal Schema are "#RRGGBB" strings. Anything that cannot
be resolved to an RGB value becomes DEFAULT_COLOR.
"""

import re
from typing import Any, Optional

from utils.accessors import safe_get, enum_name

DEFAULT_COLOR = "#000000"

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")


def _clamp(component: Any) -> int:
    return max(0, min(255, int(component)))


def normalize_color(value: Any, default: str = DEFAULT_COLOR) -> str:
    """
    Normalize an engine color value to "#RRGGBB".

    Accepts hex strings (with or without '#', 3 or 6 digits), RGB tuples
    (including python-pptx RGBColor), packed integers and color format
    objects exposing an ``rgb`` attribute.

    Args:
        value: Color value in any supported representation
        default: Returned when the value cannot be resolved

    Returns:
        Uppercase "#RRGGBB" string
    """
    if value is None:
        return default

    try:
        if isinstance(value, str):
            match = _HEX_RE.match(value.strip())
            if not match:
                return default
            digits = match.group(1)
            if len(digits) == 3:
                digits = "".join(c * 2 for c in digits)
            return f"#{digits.upper()}"

        if isinstance(value, bool):
            return default

        if isinstance(value, int):
            return f"#{value & 0xFFFFFF:06X}"

        if isinstance(value, (tuple, list)):
            if len(value) < 3:
                return default
            r, g, b = (_clamp(c) for c in value[:3])
            return f"#{r:02X}{g:02X}{b:02X}"

        rgb = safe_get(value, "rgb")
        if rgb is not None and rgb is not value:
            return normalize_color(rgb, default)
    except (TypeError, ValueError):
        return default

    return default


def extract_color(color_format: Any) -> Optional[str]:
    """
    Resolve a python-pptx ColorFormat to "#RRGGBB".

    Returns None when no color is defined at all. Theme colors without an
    explicit RGB value fall back to DEFAULT_COLOR.
    """
    if color_format is None:
        return None
    if safe_get(color_format, "type") is None and safe_get(color_format, "rgb") is None:
        return None
    return normalize_color(safe_get(color_format, "rgb"))


def theme_color_name(color_format: Any) -> Optional[str]:
    return enum_name(safe_get(color_format, "theme_color"))
