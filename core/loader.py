"""
Presentation loader built on python-pptx.

PresentationLoader owns the document handle for one extraction run and is the
only component that releases it.

Typical usage:
    loader = PresentationLoader("input.pptx")
    prs = loader.get_presentation()
    ...
    loader.dispose()
"""

import io
import logging
import os
from typing import IO, Any, Dict, List, Optional, Union

from pptx import Presentation

from core.exceptions import ConfigurationError
from utils.accessors import emu_to_points

logger = logging.getLogger(__name__)


class PresentationLoader:
    """
    Loader for PowerPoint presentations.

    Args:
        source: Path to a .pptx file, raw bytes, or a binary stream
    """

    def __init__(self, source: Union[str, bytes, IO[bytes]]):
        if isinstance(source, str) and not os.path.exists(source):
            raise FileNotFoundError(f"PPTX file not found: {source}")

        self.source = source
        self.pptx_path = source if isinstance(source, str) else None
        self.file_size: Optional[int] = None
        self.presentation = None
        self._disposed = False
        self._load()

    def _load(self):
        """Load the presentation from the source."""
        try:
            if isinstance(self.source, bytes):
                self.file_size = len(self.source)
                self.presentation = Presentation(io.BytesIO(self.source))
            else:
                if self.pptx_path:
                    self.file_size = os.path.getsize(self.pptx_path)
                self.presentation = Presentation(self.source)
        except Exception as e:
            logger.error(f"Failed to load presentation: {e}")
            raise

    def get_presentation(self) -> Any:
        """
        Get the loaded presentation object.

        Raises:
            ConfigurationError: if the handle was already disposed
        """
        if self.presentation is None:
            raise ConfigurationError("Presentation handle is not available (already disposed?)")
        return self.presentation

    def get_slides(self) -> List[Any]:
        return list(self.get_presentation().slides)

    def get_slide(self, index: int) -> Optional[Any]:
        """
        Get a specific slide by index.

        Args:
            index: 0-based index of the slide

        Returns:
            Slide object or None if index is out of range
        """
        slides = self.get_slides()
        if 0 <= index < len(slides):
            return slides[index]
        logger.warning(f"Slide index {index} out of range (0-{len(slides) - 1})")
        return None

    def get_slide_count(self) -> int:
        return len(self.get_presentation().slides)

    def get_dimensions(self) -> Dict[str, Any]:
        """
        Get presentation dimensions (points) and orientation.

        Returns:
            Dictionary with width, height, and orientation
        """
        prs = self.get_presentation()
        width = emu_to_points(prs.slide_width)
        height = emu_to_points(prs.slide_height)
        return {
            "width": width,
            "height": height,
            "orientation": "portrait" if height > width else "landscape",
        }

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self):
        """Release the presentation handle. Later calls are no-ops."""
        if self._disposed:
            logger.debug("Presentation already disposed")
            return
        self.presentation = None
        self._disposed = True
