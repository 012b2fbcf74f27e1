"""
Structure Extractors Package

Slide, shape and format extraction to the Universal Schema.
"""

from .extensions import ExtensionRegistry, ExtensionType, get_extension_registry
from .presentation import PresentationExtractor, PresentationOptions
from .shapes import ShapeExtractor
from .slides import SlideExtractor, SlideOptions

__all__ = [
    "ExtensionRegistry",
    "ExtensionType",
    "get_extension_registry",
    "PresentationExtractor",
    "PresentationOptions",
    "ShapeExtractor",
    "SlideExtractor",
    "SlideOptions",
]
