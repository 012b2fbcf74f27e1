"""
Whole-document extraction into a UniversalPresentation.
"""

import logging
import time
from datetime import datetime
from typing import Any, List, Optional

from core.exceptions import ConfigurationError, ExtractionError, SchemaValidationError
from extractors.extensions import ExtensionRegistry
from extractors.slides import SlideExtractor, SlideOptions
from extractors.validation import validate_presentation
from utils.accessors import emu_to_points, safe_get, safe_len, safe_list, xml_element, xpath
from utils.asset_schemas import SlideRange
from utils.schemas import (
    DocumentProperties,
    LayoutInfo,
    MasterInfo,
    PresentationMetadata,
    SecurityInfo,
    ShapeType,
    SlideSize,
    UniversalPresentation,
    UniversalSlide,
)

logger = logging.getLogger(__name__)

MACRO_CONTENT_TYPE_MARKER = "macroEnabled"


class PresentationOptions(SlideOptions):
    slide_range: Optional[SlideRange] = None
    file_size: Optional[int] = None


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _timestamp(value: Any) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else None


def extract_document_properties(prs: Any) -> DocumentProperties:
    core = safe_get(prs, "core_properties")
    revision = safe_get(core, "revision")
    return DocumentProperties(
        title=_text(safe_get(core, "title")),
        author=_text(safe_get(core, "author")),
        subject=_text(safe_get(core, "subject")),
        keywords=_text(safe_get(core, "keywords")),
        category=_text(safe_get(core, "category")),
        comments=_text(safe_get(core, "comments")),
        last_modified_by=_text(safe_get(core, "last_modified_by")),
        revision=revision if isinstance(revision, int) else None,
        created=_timestamp(safe_get(core, "created")),
        modified=_timestamp(safe_get(core, "modified")),
    )


def extract_security(prs: Any) -> SecurityInfo:
    """
    Security flags. Encrypted packages never reach this point (the engine
    refuses to open them), so is_encrypted stays False.
    """
    content_type = safe_get(prs, "part.content_type", "") or ""
    return SecurityInfo(
        is_encrypted=False,
        is_write_protected=bool(xpath(xml_element(prs), "./*[local-name()='modifyVerifier']")),
        has_macros=MACRO_CONTENT_TYPE_MARKER in str(content_type),
    )


def extract_slide_size(prs: Any) -> Optional[SlideSize]:
    width = safe_get(prs, "slide_width")
    height = safe_get(prs, "slide_height")
    if width is None or height is None:
        return None
    width_pt, height_pt = emu_to_points(width), emu_to_points(height)
    return SlideSize(
        width=width_pt,
        height=height_pt,
        orientation="portrait" if height_pt > width_pt else "landscape",
    )


def extract_masters(prs: Any):
    masters: List[MasterInfo] = []
    layouts: List[LayoutInfo] = []
    for master_index, master in enumerate(safe_list(prs, "slide_masters")):
        master_layouts = safe_list(master, "slide_layouts")
        masters.append(
            MasterInfo(
                index=master_index,
                name=_text(safe_get(master, "name")),
                layout_count=len(master_layouts),
            )
        )
        for layout in master_layouts:
            layouts.append(
                LayoutInfo(
                    index=len(layouts),
                    name=_text(safe_get(layout, "name")),
                    master_index=master_index,
                    placeholder_count=safe_len(safe_get(layout, "placeholders")),
                )
            )
    return masters, layouts


def build_metadata(slides: List[UniversalSlide], file_size: Optional[int]) -> PresentationMetadata:
    shapes = [shape for slide in slides for shape in slide.iter_shapes()]
    return PresentationMetadata(
        slide_count=len(slides),
        shape_count=len(shapes),
        image_count=sum(1 for s in shapes if s.shape_type == ShapeType.PICTURE),
        chart_count=sum(1 for s in shapes if s.shape_type == ShapeType.CHART),
        table_count=sum(1 for s in shapes if s.shape_type == ShapeType.TABLE),
        animation_count=sum(len(slide.animations) for slide in slides),
        total_file_size=file_size,
    )


class PresentationExtractor:
    """
    Extracts a python-pptx Presentation into the Universal Schema.

    Slides are extracted independently; a corrupt slide degrades to a minimal
    slide with a warning and the rest of the document is still converted.
    """

    def __init__(self, registry: Optional[ExtensionRegistry] = None):
        self.slide_extractor = SlideExtractor(registry=registry)

    def extract(self, prs: Any, options: Optional[PresentationOptions] = None) -> UniversalPresentation:
        """
        Extract the whole document.

        Args:
            prs: Engine presentation
            options: PresentationOptions (defaults when None)

        Returns:
            UniversalPresentation with metadata.slide_count == len(slides)

        Raises:
            ConfigurationError: if no document handle was given
            ExtractionError: if the document (or the requested range) has no slides
            SchemaValidationError: if options.validate_output and validation fails
        """
        if prs is None:
            raise ConfigurationError("No presentation handle supplied")
        options = options or PresentationOptions()
        started = time.perf_counter()

        source_slides = safe_list(prs, "slides")
        selected = [
            (index, slide)
            for index, slide in enumerate(source_slides)
            if options.slide_range is None or options.slide_range.contains(index)
        ]
        if not selected:
            raise ExtractionError(
                f"No slides to extract ({len(source_slides)} in document, range {options.slide_range})"
            )

        logger.info(f"Extracting {len(selected)} of {len(source_slides)} slides")
        slides = [self.slide_extractor.extract(slide, options, index) for index, slide in selected]

        masters, layouts = extract_masters(prs)
        presentation = UniversalPresentation(
            document_properties=extract_document_properties(prs),
            security=extract_security(prs),
            slide_size=extract_slide_size(prs),
            master_slides=masters,
            layout_slides=layouts,
            slides=slides,
            metadata=build_metadata(slides, options.file_size),
        )
        presentation.metadata.processing_time_ms = int((time.perf_counter() - started) * 1000)

        warning_count = sum(len(slide.warnings) for slide in slides)
        if warning_count:
            logger.warning(f"Extraction finished with {warning_count} slide warning(s)")

        if options.validate_output:
            violations = validate_presentation(presentation)
            if violations:
                raise SchemaValidationError(
                    f"Presentation failed validation with {len(violations)} violation(s)", violations
                )
        return presentation
