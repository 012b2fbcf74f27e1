import logging
from typing import Any, List, Optional

from assets.base import partname_ext, related_blob
from assets.media import MediaAssetExtractor
from assets.signatures import detect_audio_format
from utils.accessors import safe_get, xml_element, xpath
from utils.asset_schemas import AssetExtractionOptions, AssetResult

logger = logging.getLogger(__name__)

_TRANSITION_SOUND = (
    ".//*[local-name()='transition']//*[local-name()='stSnd']"
    "/*[local-name()='snd']"
)


class AudioAssetExtractor(MediaAssetExtractor):
    """Embedded audio shapes plus sounds attached to slide transitions."""

    asset_type = "audio"
    media_type = "audio"

    def extract_from_slide(self, slide: Any, slide_index: int, options: AssetExtractionOptions) -> List[AssetResult]:
        assets = self.extract_media_shapes(slide, slide_index, options)
        try:
            assets.extend(self.extract_transition_sounds(slide, slide_index, options))
        except Exception as e:
            logger.warning(f"Failed to extract transition audio on slide {slide_index}: {e}")
        return assets

    def extract_transition_sounds(self, slide: Any, slide_index: int, options: AssetExtractionOptions) -> List[AssetResult]:
        assets = []
        part = safe_get(slide, "part")
        for sound in xpath(xml_element(slide), _TRANSITION_SOUND):
            embeds = [value for key, value in sound.items() if key.endswith("}embed")]
            if not embeds:
                continue
            related = related_blob(part, embeds[0])
            if related is None:
                continue
            data, sound_part = related

            metadata = self.build_metadata(None, slide_index, "slide-transition", options)
            metadata.shape_type = "transition-sound"
            metadata.mime_type = safe_get(sound_part, "content_type")
            assets.append(
                self.build_asset(
                    data,
                    self.format_of(data, partname_ext(sound_part)),
                    "transition-audio",
                    slide_index,
                    options,
                    metadata,
                    original_name=sound.get("name"),
                )
            )
        return assets

    def format_of(self, data: bytes, fallback: Optional[str]) -> str:
        return detect_audio_format(data, fallback=fallback)
