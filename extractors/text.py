"""
Text frame extraction: frame → paragraphs → portions (runs), each portion
with its own font.
"""

import logging
from typing import Any, Optional

from extractors.formats import extract_run_hyperlink
from utils.accessors import emu_to_points, enum_name, safe_get, safe_list
from utils.colors import extract_color
from utils.schemas import FontFormat, Paragraph, Portion, TextFrame

logger = logging.getLogger(__name__)

DEFAULT_FONT_NAME = "Arial"
DEFAULT_FONT_SIZE = 12


def _optional_points(value: Any) -> Optional[float]:
    if value is None:
        return None
    return emu_to_points(value, default=None)


def extract_font(font: Any) -> FontFormat:
    """Font of a run; unset properties fall back to Arial 12pt plain."""
    if font is None:
        return FontFormat()

    size = safe_get(font, "size.pt")
    underline = safe_get(font, "underline")

    return FontFormat(
        name=safe_get(font, "name") or DEFAULT_FONT_NAME,
        size=float(size) if isinstance(size, (int, float)) and size > 0 else DEFAULT_FONT_SIZE,
        bold=safe_get(font, "bold") is True,
        italic=safe_get(font, "italic") is True,
        underline=bool(underline) and enum_name(underline) != "NONE",
        color=extract_color(safe_get(font, "color")),
    )


def extract_portion(run: Any) -> Portion:
    return Portion(
        text=safe_get(run, "text", "") or "",
        font=extract_font(safe_get(run, "font")),
        hyperlink=extract_run_hyperlink(run),
    )


def extract_paragraph(paragraph: Any) -> Paragraph:
    portions = [extract_portion(run) for run in safe_list(paragraph, "runs")]

    text = safe_get(paragraph, "text")
    if not isinstance(text, str):
        text = "".join(portion.text for portion in portions)

    level = safe_get(paragraph, "level", 0)
    line_spacing = safe_get(paragraph, "line_spacing")
    if isinstance(line_spacing, float):
        # float means a multiple of single spacing, Length means points
        spacing = line_spacing
    else:
        spacing = _optional_points(line_spacing)

    return Paragraph(
        text=text,
        alignment=enum_name(safe_get(paragraph, "alignment")),
        level=level if isinstance(level, int) else 0,
        space_before=_optional_points(safe_get(paragraph, "space_before")),
        space_after=_optional_points(safe_get(paragraph, "space_after")),
        line_spacing=spacing,
        portions=portions,
    )


def extract_text_frame(text_frame: Any) -> Optional[TextFrame]:
    """
    Map a python-pptx TextFrame.

    Args:
        text_frame: TextFrame (or None)

    Returns:
        TextFrame with every paragraph and portion, None when absent
    """
    if text_frame is None:
        return None

    paragraphs = []
    for paragraph in safe_list(text_frame, "paragraphs"):
        try:
            paragraphs.append(extract_paragraph(paragraph))
        except Exception as e:
            logger.debug(f"Skipping unreadable paragraph: {e}")

    text = safe_get(text_frame, "text")
    if not isinstance(text, str):
        text = "\n".join(p.text for p in paragraphs)

    word_wrap = safe_get(text_frame, "word_wrap")

    return TextFrame(
        text=text,
        paragraphs=paragraphs,
        word_wrap=word_wrap if isinstance(word_wrap, bool) else None,
        auto_size=enum_name(safe_get(text_frame, "auto_size")),
        vertical_anchor=enum_name(safe_get(text_frame, "vertical_anchor")),
        margin_left=_optional_points(safe_get(text_frame, "margin_left")),
        margin_right=_optional_points(safe_get(text_frame, "margin_right")),
        margin_top=_optional_points(safe_get(text_frame, "margin_top")),
        margin_bottom=_optional_points(safe_get(text_frame, "margin_bottom")),
    )
