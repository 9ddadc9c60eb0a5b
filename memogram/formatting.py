"""Telegram message entities to Markdown.

Telegram describes rich text as a list of entities whose offsets and
lengths are counted in UTF-16 code units. This module rebuilds the
Markdown a Memos memo expects:

  url        → [text](text)
  text_link  → [text](url)
  bold       → **text**
  italic     → *text*

Every other entity type is ignored. Overlapping entities are resolved by
keeping the one that starts first (then the shorter one); the other is
dropped whole.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

_CODEC = "utf-16-le"
_UNIT = 2  # bytes per UTF-16 code unit


class EntityKind(Enum):
    LINK = "url"
    ALIASED_LINK = "text_link"
    BOLD = "bold"
    ITALIC = "italic"


@dataclass(frozen=True)
class Annotation:
    kind: Optional[EntityKind]   # None for unsupported Telegram types
    offset: int                  # UTF-16 code units
    length: int                  # UTF-16 code units
    url: Optional[str] = None


def _kind_from_type(entity_type) -> Optional[EntityKind]:
    # python-telegram-bot hands out MessageEntityType (a str enum) or plain str
    value = getattr(entity_type, "value", entity_type)
    try:
        return EntityKind(value)
    except ValueError:
        return None


def annotations_from_entities(entities: Iterable) -> list[Annotation]:
    """Convert Telegram ``MessageEntity`` objects to supported annotations."""
    annotations = []
    for entity in entities or ():
        kind = _kind_from_type(entity.type)
        if kind is None:
            continue
        annotations.append(
            Annotation(
                kind=kind,
                offset=entity.offset,
                length=entity.length,
                url=getattr(entity, "url", None),
            )
        )
    return annotations


def _decode(units: bytes) -> str:
    # surrogatepass keeps an offset that lands inside a surrogate pair from raising
    return units.decode(_CODEC, errors="surrogatepass")


def _wrap(segment: str, annotation: Annotation) -> str:
    """Apply markers to the non-whitespace core of a segment."""
    if not segment.strip():
        return segment

    core = segment.strip()
    start = len(segment) - len(segment.lstrip())
    prefix = segment[:start]
    suffix = segment[start + len(core):]

    kind = annotation.kind
    if kind is EntityKind.LINK:
        core = f"[{core}]({core})"
    elif kind is EntityKind.ALIASED_LINK:
        core = f"[{core}]({annotation.url or ''})"
    elif kind is EntityKind.BOLD:
        core = f"**{core}**"
    elif kind is EntityKind.ITALIC:
        core = f"*{core}*"
    else:
        return segment
    return f"{prefix}{core}{suffix}"


def format_content(content: str, annotations: Iterable[Annotation]) -> str:
    """Render ``content`` with ``annotations`` applied as Markdown.

    Text not covered by an applied annotation is copied through unchanged
    and in order; only wrapping markers are inserted. Never raises.
    """
    ordered = sorted(annotations or (), key=lambda a: (a.offset, a.length))
    if not ordered:
        return content

    units = content.encode(_CODEC, errors="surrogatepass")
    total = len(units) // _UNIT

    parts = []
    cursor = 0
    for annotation in ordered:
        if not isinstance(annotation.kind, EntityKind):
            continue
        start = annotation.offset
        if start < cursor:
            # overlaps an annotation already applied
            continue
        if start >= total:
            break
        end = min(start + max(annotation.length, 0), total)

        parts.append(_decode(units[cursor * _UNIT:start * _UNIT]))
        segment = _decode(units[start * _UNIT:end * _UNIT])
        parts.append(_wrap(segment, annotation))
        cursor = end

    parts.append(_decode(units[cursor * _UNIT:]))
    return "".join(parts)
