"""
Guarded accessors for document engine objects.

Every read against the engine object graph goes through these helpers so a
missing or raising accessor degrades to a default instead of failing the
shape, slide or document being extracted.
"""

import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

EMU_PER_POINT = 12700


def safe_get(obj: Any, path: str, default: Any = None) -> Any:
    """
    Read a dotted attribute path from an engine object.

    Args:
        obj: Engine object (may be None)
        path: Attribute path such as "fill.fore_color.rgb"
        default: Value returned when any step is absent, None or raises

    Returns:
        The attribute value or default
    """
    if obj is None:
        return default

    current = obj
    for name in path.split("."):
        try:
            current = getattr(current, name)
        except Exception as e:
            logger.debug(f"Accessor '{name}' unavailable on {type(current).__name__}: {e}")
            return default
        if current is None:
            return default
    return current


def safe_call(func: Optional[Callable], *args, default: Any = None, **kwargs) -> Any:
    """Call func, returning default when it is missing or raises."""
    if func is None or not callable(func):
        return default
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.debug(f"Call to {getattr(func, '__name__', func)} failed: {e}")
        return default


def has_capability(obj: Any, name: str) -> bool:
    """True when obj exposes a non-None attribute without raising."""
    return safe_get(obj, name) is not None


def safe_list(obj: Any, path: Optional[str] = None) -> List[Any]:
    """Materialize an engine collection into a list, empty on failure."""
    collection = safe_get(obj, path) if path else obj
    if collection is None:
        return []
    try:
        return list(collection)
    except Exception as e:
        logger.debug(f"Collection '{path}' could not be enumerated: {e}")
        return []


def safe_len(obj: Any, default: int = 0) -> int:
    if obj is None:
        return default
    try:
        return len(obj)
    except Exception:
        return default


def emu_to_points(value: Any, default: float = 0.0) -> float:
    """Convert an EMU length to points."""
    if value is None:
        return default
    try:
        return float(value) / EMU_PER_POINT
    except (TypeError, ValueError):
        return default


def points_to_emu(value: Any) -> int:
    return int(round(float(value or 0) * EMU_PER_POINT))


def enum_name(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Name of an engine enumeration member (MSO_SHAPE_TYPE.PICTURE -> 'PICTURE')."""
    if value is None:
        return default
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name
    text = str(value)
    # older enum reprs look like "PICTURE (13)"
    return text.split(" ")[0] if text else default


def xml_element(obj: Any) -> Any:
    """The underlying lxml element of an engine object, or None."""
    return safe_get(obj, "_element")


def xpath(element: Any, expression: str) -> List[Any]:
    """Evaluate an xpath on an engine element, empty list on any failure."""
    if element is None:
        return []
    result = safe_call(getattr(element, "xpath", None), expression, default=None)
    if result is None:
        return []
    if isinstance(result, (list, tuple)):
        return list(result)
    return [result]


def local_name(element: Any) -> str:
    """Tag name without namespace, '' when unavailable."""
    tag = safe_get(element, "tag", "")
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]
