"""
Slide XML readers for features the engine has no object API for:
transitions, animation timing and legacy comments.
"""

import logging
from typing import Any, Dict, List, Optional

from lxml import etree

from utils.accessors import local_name, safe_call, safe_get, xml_element, xpath
from utils.schemas import Animation, Comment, Position, SlideTiming, Transition

logger = logging.getLogger(__name__)

COMMENTS_RELTYPE_SUFFIX = "/comments"
COMMENT_AUTHORS_RELTYPE_SUFFIX = "/commentAuthors"

_NON_EFFECT_CHILDREN = ("sndAc", "extLst")


def _local_attr(element: Any, name: str) -> Optional[str]:
    """Attribute value matched by local name, ignoring namespace."""
    for key, value in (safe_call(element.items, default=[]) if element is not None else []):
        if key.rsplit("}", 1)[-1] == name:
            return value
    return None


def _int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def extract_transition(slide: Any) -> Optional[Transition]:
    transitions = xpath(xml_element(slide), ".//*[local-name()='transition']")
    if not transitions:
        return None
    element = transitions[0]

    effect = None
    for child in element:
        name = local_name(child)
        if name and name not in _NON_EFFECT_CHILDREN:
            effect = name
            break

    return Transition(
        type=effect,
        speed=_local_attr(element, "spd"),
        duration_ms=_int(_local_attr(element, "dur")),
        advance_on_click=_local_attr(element, "advClick") not in ("0", "false"),
        advance_after_ms=_int(_local_attr(element, "advTm")),
        has_sound=bool(xpath(element, ".//*[local-name()='snd']")),
    )


def _animation(node: Any) -> Animation:
    delays = xpath(node, "./*[local-name()='stCondLst']/*[local-name()='cond']/@delay")
    durations = xpath(node, ".//*[local-name()='cTn'][@dur]/@dur")
    targets = xpath(node, ".//*[local-name()='spTgt']/@spid")
    return Animation(
        effect_class=node.get("presetClass"),
        preset_id=_int(node.get("presetID")),
        target_shape_id=_int(str(targets[0])) if targets else None,
        trigger=node.get("nodeType"),
        delay_ms=_int(str(delays[0])) if delays else None,
        duration_ms=_int(str(durations[0])) if durations else None,
    )


def extract_animations(slide: Any) -> List[Animation]:
    timing = xpath(xml_element(slide), "./*[local-name()='timing']")
    if not timing:
        return []
    animations = []
    for node in xpath(timing[0], ".//*[local-name()='cTn'][@presetClass]"):
        try:
            animations.append(_animation(node))
        except Exception as e:
            logger.debug(f"Skipping unreadable animation node: {e}")
    return animations


def extract_timing(slide: Any, animations: List[Animation]) -> Optional[SlideTiming]:
    timing = xpath(xml_element(slide), "./*[local-name()='timing']")
    if not timing:
        return None
    interactive = xpath(timing[0], ".//*[local-name()='cTn'][@nodeType='interactiveSeq']")
    return SlideTiming(
        has_timeline=True,
        effect_count=len(animations),
        interactive_sequence_count=len(interactive),
    )


def _related_blobs(part: Any, reltype_suffix: str) -> List[bytes]:
    rels = safe_get(part, "rels")
    blobs = []
    for relationship in safe_call(getattr(rels, "values", None), default=[]) or []:
        reltype = safe_get(relationship, "reltype", "")
        if not str(reltype).endswith(reltype_suffix) or safe_get(relationship, "is_external") is True:
            continue
        blob = safe_get(relationship, "target_part.blob")
        if blob:
            blobs.append(blob)
    return blobs


def _comment_authors(slide: Any) -> Dict[int, str]:
    presentation_part = safe_get(slide, "part.package.presentation_part")
    authors: Dict[int, str] = {}
    for blob in _related_blobs(presentation_part, COMMENT_AUTHORS_RELTYPE_SUFFIX):
        root = etree.fromstring(blob)
        for author in root.xpath("//*[local-name()='cmAuthor']"):
            author_id = _int(author.get("id"))
            if author_id is not None:
                authors[author_id] = author.get("name")
    return authors


def extract_comments(slide: Any) -> List[Comment]:
    """Legacy (pre-threaded) comments attached to a slide."""
    blobs = _related_blobs(safe_get(slide, "part"), COMMENTS_RELTYPE_SUFFIX)
    if not blobs:
        return []

    authors = _comment_authors(slide)
    comments = []
    for blob in blobs:
        root = etree.fromstring(blob)
        for node in root.xpath("//*[local-name()='cm']"):
            author_id = _int(node.get("authorId"))
            positions = node.xpath("./*[local-name()='pos']")
            position = None
            if positions:
                position = Position(
                    x=float(positions[0].get("x", 0)),
                    y=float(positions[0].get("y", 0)),
                )
            comments.append(
                Comment(
                    author=authors.get(author_id) if author_id is not None else None,
                    author_id=author_id,
                    text="".join(node.xpath("./*[local-name()='text']/text()")),
                    created=node.get("dt"),
                    position=position,
                )
            )
    return comments
