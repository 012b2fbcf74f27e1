"""
Invariant checks for Universal Schema documents.

The validators return a list of violations; callers decide whether to raise
SchemaValidationError or only report them.
"""

import re
from typing import List, Optional

from core.config import MAX_GROUP_DEPTH
from utils.schemas import (
    PAYLOAD_KINDS,
    FillFormat,
    GroupPayload,
    LineFormat,
    ShapeType,
    UniversalPresentation,
    UniversalShape,
    UniversalSlide,
)

_COLOR_RE = re.compile(r"^#[0-9A-F]{6}$")

# kinds allowed to have a zero-sized frame
DEGENERATE_KINDS = (ShapeType.LINE, ShapeType.CONNECTOR)


def _check_color(value: Optional[str], where: str, violations: List[str]) -> None:
    if value is not None and not _COLOR_RE.match(value):
        violations.append(f"{where}: color '{value}' is not #RRGGBB")


def _check_fill(fill: Optional[FillFormat], where: str, violations: List[str]) -> None:
    if fill is None:
        return
    _check_color(fill.color, f"{where} fill", violations)
    _check_color(fill.fore_color, f"{where} fill", violations)
    _check_color(fill.back_color, f"{where} fill", violations)
    for stop in fill.gradient_stops:
        _check_color(stop.color, f"{where} gradient", violations)


def _check_line(line: Optional[LineFormat], where: str, violations: List[str]) -> None:
    if line is not None:
        _check_color(line.color, f"{where} line", violations)


def validate_shape(shape: UniversalShape, depth: int = 0, path: str = "") -> List[str]:
    violations: List[str] = []
    where = f"shape '{path}{shape.name or shape.shape_id}'"

    if depth > MAX_GROUP_DEPTH:
        violations.append(f"{where}: group nesting deeper than {MAX_GROUP_DEPTH}")
        return violations

    geometry = shape.geometry
    if shape.shape_type not in DEGENERATE_KINDS and shape.shape_type != ShapeType.GROUP:
        if geometry.width <= 0 or geometry.height <= 0:
            violations.append(f"{where}: width and height must be positive")

    payload = shape.payload
    if payload is not None and payload.kind != "unsupported":
        allowed = PAYLOAD_KINDS.get(shape.shape_type, ())
        if payload.kind not in allowed:
            violations.append(f"{where}: payload '{payload.kind}' does not match shape type '{shape.shape_type.value}'")

    _check_fill(shape.fill, where, violations)
    _check_line(shape.line, where, violations)
    if shape.text_frame is not None:
        for paragraph in shape.text_frame.paragraphs:
            for portion in paragraph.portions:
                _check_color(portion.font.color, f"{where} text", violations)

    if isinstance(payload, GroupPayload):
        for child in payload.shapes:
            violations.extend(validate_shape(child, depth + 1, f"{path}{shape.name}/"))
    return violations


def validate_slide(slide: UniversalSlide) -> List[str]:
    """Return every invariant violation found on a slide."""
    violations: List[str] = []
    if slide.slide_id < 1:
        violations.append(f"slide_id {slide.slide_id} is not a positive integer")
    if slide.background is not None:
        _check_fill(slide.background.fill, "background", violations)
    for shape in slide.shapes:
        violations.extend(validate_shape(shape))
    return violations


def validate_presentation(presentation: UniversalPresentation) -> List[str]:
    violations: List[str] = []
    if not presentation.slides:
        violations.append("presentation has no slides")
    if presentation.metadata.slide_count != len(presentation.slides):
        violations.append(
            f"metadata.slide_count {presentation.metadata.slide_count} != {len(presentation.slides)} slides"
        )
    for slide in presentation.slides:
        violations.extend(f"slide {slide.slide_index}: {v}" for v in validate_slide(slide))
    return violations
