"""
Slide extraction: slide-level scalars, background, notes, transition,
animations, comments and the (bounded) shape list.
"""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from core.config import MAX_GROUP_DEPTH, MAX_SHAPES_PER_SLIDE
from core.exceptions import SchemaValidationError
from extractors.extensions import ALL_EXTENSIONS, ExtensionRegistry, ExtensionType
from extractors.formats import extract_fill
from extractors.shapes import ShapeExtractor, extract_placeholder
from extractors.timeline import (
    extract_animations,
    extract_comments,
    extract_timing,
    extract_transition,
)
from extractors.validation import validate_slide
from utils.accessors import safe_get, safe_list, xml_element, xpath
from utils.schemas import Background, PlaceholderInfo, UniversalSlide

logger = logging.getLogger(__name__)

_BACKGROUND = "./*[local-name()='cSld']/*[local-name()='bg']"


class SlideOptions(BaseModel):
    """Options controlling what a SlideExtractor reads from each slide."""

    process_shapes: bool = True
    include_notes: bool = True
    include_background: bool = True
    include_animations: bool = True
    include_comments: bool = True
    max_shapes_per_slide: int = Field(default=MAX_SHAPES_PER_SLIDE, ge=0)
    extensions: List[ExtensionType] = Field(default_factory=lambda: list(ALL_EXTENSIONS))
    validate_output: bool = False
    embed_images: bool = False
    max_group_depth: int = MAX_GROUP_DEPTH


def extract_background(slide: Any) -> Background:
    """
    Slide background.

    Only reads the engine's fill when the slide defines its own bgPr; asking
    python-pptx for the fill otherwise adds one to the slide.
    """
    backgrounds = xpath(xml_element(slide), _BACKGROUND)
    if not backgrounds:
        return Background(follows_master=True)

    if not xpath(backgrounds[0], "./*[local-name()='bgPr']"):
        # theme style reference (bgRef), no explicit fill
        return Background(follows_master=False)

    return Background(
        fill=extract_fill(safe_get(slide, "background.fill")),
        follows_master=False,
    )


def extract_notes(slide: Any) -> Optional[str]:
    if safe_get(slide, "has_notes_slide") is False:
        return None
    text = safe_get(slide, "notes_slide.notes_text_frame.text")
    return text if isinstance(text, str) and text else None


def is_hidden(slide: Any) -> bool:
    element = xml_element(slide)
    if element is None:
        return False
    return safe_get(element, "attrib", {}).get("show") in ("0", "false")


class SlideExtractor:
    """
    Builds a UniversalSlide from an engine slide.

    Failures of individual properties and shapes are recorded in the slide's
    warnings; only opt-in validation failures propagate.
    """

    def __init__(self, registry: Optional[ExtensionRegistry] = None):
        self.registry = registry

    def _shape_extractor(self, options: SlideOptions) -> ShapeExtractor:
        return ShapeExtractor(
            registry=self.registry,
            extensions=options.extensions,
            max_depth=options.max_group_depth,
            embed_images=options.embed_images,
        )

    def extract(
        self,
        slide: Any,
        options: Optional[SlideOptions] = None,
        slide_index: int = 0,
    ) -> UniversalSlide:
        """
        Extract one slide.

        Args:
            slide: Engine slide
            options: SlideOptions (defaults when None)
            slide_index: 0-based position of the slide in its presentation

        Returns:
            UniversalSlide; a minimal slide with a warning on total failure

        Raises:
            SchemaValidationError: if options.validate_output and the slide
                violates a schema invariant
        """
        options = options or SlideOptions()
        try:
            result = self._extract(slide, options, slide_index)
        except SchemaValidationError:
            raise
        except Exception as e:
            logger.error(f"Slide {slide_index} extraction failed: {e}")
            return UniversalSlide(
                slide_id=slide_index + 1,
                slide_index=slide_index,
                warnings=[f"Slide extraction failed: {e}"],
            )

        if options.validate_output:
            violations = validate_slide(result)
            if violations:
                raise SchemaValidationError(
                    f"Slide {slide_index} failed validation with {len(violations)} violation(s)",
                    violations,
                )
        return result

    def _extract(self, slide: Any, options: SlideOptions, slide_index: int) -> UniversalSlide:
        warnings: List[str] = []

        slide_id = safe_get(slide, "slide_id")
        name = safe_get(slide, "name")
        result = UniversalSlide(
            slide_id=slide_id if isinstance(slide_id, int) and slide_id > 0 else slide_index + 1,
            slide_index=slide_index,
            name=name if isinstance(name, str) and name else None,
            layout_name=safe_get(slide, "slide_layout.name"),
            hidden=is_hidden(slide),
        )

        if options.include_background:
            result.background = self._guarded("background", warnings, extract_background, slide)

        if options.process_shapes:
            result.shapes = self._extract_shapes(slide, options, slide_index, warnings)
            result.placeholders = self._extract_placeholders(slide)

        if options.include_notes:
            result.notes = self._guarded("notes", warnings, extract_notes, slide)

        result.transition = self._guarded("transition", warnings, extract_transition, slide)
        if options.include_animations:
            result.animations = self._guarded("animation", warnings, extract_animations, slide) or []
            result.timing = self._guarded("timing", warnings, extract_timing, slide, result.animations)
        if options.include_comments:
            result.comments = self._guarded("comment", warnings, extract_comments, slide) or []

        result.warnings = warnings
        return result

    def _guarded(self, label: str, warnings: List[str], func, *args):
        try:
            return func(*args)
        except Exception as e:
            warnings.append(f"{label} extraction failed: {e}")
            logger.debug(f"Slide {label} extraction failed: {e}")
            return None

    def _extract_shapes(self, slide: Any, options: SlideOptions, slide_index: int, warnings: List[str]):
        source = safe_list(slide, "shapes")
        limit = options.max_shapes_per_slide
        if len(source) > limit:
            logger.debug(f"Slide {slide_index}: keeping first {limit} of {len(source)} shapes")
            source = source[:limit]

        extractor = self._shape_extractor(options)
        shapes = []
        for shape in source:
            extracted = extractor.extract_safely(shape, depth=0, warnings=warnings)
            if extracted is not None:
                shapes.append(extracted)
        return shapes

    def _extract_placeholders(self, slide: Any) -> List[PlaceholderInfo]:
        placeholders = []
        for shape in safe_list(slide, "placeholders"):
            info = extract_placeholder(shape)
            if info is not None:
                placeholders.append(info)
        return placeholders
