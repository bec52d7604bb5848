"""Recover artifact kind and state from positional response arrays.

Artifact rows look like::

    [id, title, type_code, [[[source_id]], ...], state, null, null, null,
     null, [null, "<media url>" | [customization...]], ...]

with no field names and type codes that mean different things depending on
what else is in the row. Code 4 is either a quiz or a flashcard deck, code 3
a report or a video, code 1 a report or an audio overview. The layered
checks below reproduce the observed server behaviour and their order
matters.

Every check is a pure function over the node tree from ``wire.nodes``.
Rows without an id resolve to None rather than raising.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

from notebooklm_wire.entities.models import DomainEntity, EntityKind, EntityState
from notebooklm_wire.wire.nodes import (
    Bool,
    ListNode,
    Node,
    Null,
    Number,
    Text,
    from_json,
    iter_lists,
    iter_text,
    stringify,
)

logger = logging.getLogger(__name__)

# Heuristic search bounds
KIND_SCAN_DEPTH = 10
MEDIA_SCAN_DEPTH = 15

# Artifact ids are long opaque strings; anything shorter is not an id
MIN_ID_LENGTH = 10

TYPE_CODE_RANGE = (1, 10)
TYPE_CODE_POSITIONS = range(1, 5)
STATE_POSITION = 4

# Positions checked for the [x, [customization]] pair of quiz/flashcard rows
CUSTOMIZATION_POSITIONS = (9, 10, 8, 11, 12)
MEDIA_URL_POSITION = 9
MEDIA_URL_FALLBACK_POSITIONS = range(6, 16)

CDN_FRAGMENTS = (
    "lh3.googleusercontent.com/notebooklm/",
    "lh3.google.com/rd-notebooklm/",
    "googlevideo.com/videoplayback",
)
VIDEO_MARKERS = CDN_FRAGMENTS + ("=m22", "video")
AUDIO_MARKERS = CDN_FRAGMENTS[:2] + ("=m140",)
AUDIO_KEYWORDS = ("audio", "podcast")

FIXED_KINDS = {
    2: EntityKind.REPORT,
    5: EntityKind.QUIZ,
    6: EntityKind.FLASHCARDS,
    7: EntityKind.INFOGRAPHIC,
    8: EntityKind.SLIDE_DECK,
    10: EntityKind.AUDIO,
}

STATES = {
    0: EntityState.UNKNOWN,
    1: EntityState.CREATING,
    2: EntityState.READY,
    3: EntityState.READY,
}


def as_node(raw: Any) -> Node:
    """Accept a node tree, decoded JSON or a JSON string."""
    if isinstance(raw, (ListNode, Null, Bool, Number, Text)):
        return raw
    if isinstance(raw, (str, bytes)):
        return from_json(json.loads(raw))
    return from_json(raw)


# =============================================================================
# Entry points
# =============================================================================


def resolve(raw: Any) -> DomainEntity | None:
    """Resolve a single-artifact response (e.g. ``[[row]]``) to an entity."""
    row = find_entity_array(as_node(raw))
    return resolve_row(row) if row is not None else None


def resolve_list(raw: Any) -> list[DomainEntity]:
    """Resolve a list response (``[[row1, row2, ...]]``) to entities.

    Items without an id are skipped.
    """
    entities = []
    for row in iter_rows(as_node(raw)):
        entity = resolve_row(row)
        if entity is not None:
            entities.append(entity)
    return entities


def iter_rows(node: Node) -> Iterator[ListNode]:
    """Entity rows of a list response, each unwrapped from its ``[row]`` holder."""
    for item in _unwrap_list(node):
        if isinstance(item, ListNode) and isinstance(item.get(0), ListNode):
            item = item.items[0]
        if isinstance(item, ListNode):
            yield item


def find_row(raw: Any, entity_id: str) -> ListNode | None:
    """Raw row of the entity with ``entity_id`` in a list response."""
    for row in iter_rows(as_node(raw)):
        if _text(row.get(0)) == entity_id:
            return row
    return None


def find_entity(raw: Any, entity_id: str) -> DomainEntity | None:
    """Resolve a list response and pick the entity with ``entity_id``."""
    row = find_row(raw, entity_id)
    return resolve_row(row) if row is not None else None


def find_entity_array(node: Node) -> ListNode | None:
    """Descend through wrappers to the row that starts with an id.

    Returns None when the innermost row does not start with an id.
    """
    current = node
    while isinstance(current, ListNode) and isinstance(current.get(0), ListNode):
        current = current.items[0]
    if isinstance(current, ListNode) and _is_entity_id(current.get(0)):
        return current
    return None


def resolve_row(row: ListNode) -> DomainEntity | None:
    """Resolve one entity array. Returns None when it has no id."""
    if not _is_entity_id(row.get(0)):
        return None
    entity_id = row.items[0].value

    type_code = resolve_type_code(row)
    kind = resolve_kind(type_code, row)
    media_url = extract_media_url(row) if kind.is_media else None

    return DomainEntity(
        id=entity_id,
        kind=kind,
        state=resolve_state(row),
        title=_text(row.get(1)),
        source_ids=extract_source_ids(row),
        media_url=media_url,
        type_code=type_code,
    )


def _unwrap_list(node: Node) -> tuple[Node, ...]:
    """Strip outer wrappers down to the items that are rows or ``[row]`` holders."""
    current = node
    while isinstance(current, ListNode) and len(current) > 0:
        first = current.items[0]
        if not isinstance(first, ListNode) or not isinstance(first.get(0), ListNode):
            break
        if len(current) > 1 and _is_row_holder(first):
            break
        current = first
    return current.items if isinstance(current, ListNode) else ()


# =============================================================================
# Field heuristics
# =============================================================================


def resolve_type_code(row: ListNode) -> int | float | None:
    """First number within [1, 10] among elements 1..4."""
    low, high = TYPE_CODE_RANGE
    for position in TYPE_CODE_POSITIONS:
        node = row.get(position)
        if isinstance(node, Number) and low <= node.value <= high:
            return node.value
    return None


def resolve_kind(type_code: int | float | None, row: ListNode) -> EntityKind:
    if type_code is None or not Number(type_code).is_integral:
        return EntityKind.UNKNOWN
    code = int(type_code)
    if code == 4:
        return _quiz_or_flashcards(row)
    if code == 3:
        return EntityKind.VIDEO if _has_marker(row, _is_video_text) else EntityKind.REPORT
    if code == 1:
        return EntityKind.AUDIO if _has_marker(row, _is_audio_text) else EntityKind.REPORT
    return FIXED_KINDS.get(code, EntityKind.UNKNOWN)


def resolve_state(row: ListNode) -> EntityState:
    """State from position 4; rows without one are still being created."""
    node = row.get(STATE_POSITION)
    if not isinstance(node, Number):
        return EntityState.CREATING
    return STATES.get(node.value, EntityState.FAILED)


def extract_source_ids(row: ListNode) -> tuple[str, ...]:
    """Ids from the first ``[[[id]], [[id]], ...]`` element."""
    for element in row:
        if not isinstance(element, ListNode) or not len(element):
            continue
        first = element.items[0]
        if isinstance(first, ListNode) and isinstance(first.get(0), ListNode):
            ids = []
            for source in element:
                if isinstance(source, ListNode) and isinstance(source.get(0), ListNode):
                    source_id = _text(source.items[0].get(0))
                    if source_id is not None:
                        ids.append(source_id)
            return tuple(ids)
    return ()


def extract_media_url(row: ListNode) -> str | None:
    """Media URL from the usual positions, else from anywhere in the row."""
    url = _media_url_at(row, MEDIA_URL_POSITION)
    if url:
        return url
    for position in MEDIA_URL_FALLBACK_POSITIONS:
        url = _media_url_at(row, position)
        if url:
            return url
    return find_media_url(row)


def find_media_url(node: Any, max_depth: int = MEDIA_SCAN_DEPTH) -> str | None:
    """Bounded recursive scan for any CDN media URL string."""
    for text in iter_text(as_node(node), max_depth):
        if _is_media_url(text):
            return text
    return None


# ─── Code 4: quiz vs flashcards ────────────────────────────────────────────────


def _quiz_or_flashcards(row: ListNode) -> EntityKind:
    for position in CUSTOMIZATION_POSITIONS:
        kind = _customization_kind(row.get(position))
        if kind is not None:
            return kind

    for candidate in iter_lists(row, KIND_SCAN_DEPTH):
        kind = _customization_kind(candidate)
        if kind is not None:
            return kind

    leaves = list(iter_text(row, KIND_SCAN_DEPTH))
    if any(_is_flashcards_text(text) for text in leaves):
        return EntityKind.FLASHCARDS
    if any(_is_quiz_text(text) for text in leaves):
        return EntityKind.QUIZ

    flattened = stringify(row)
    if _is_flashcards_text(flattened):
        return EntityKind.FLASHCARDS
    if _is_quiz_text(flattened):
        return EntityKind.QUIZ

    # No signal at all; quiz is the observed default
    logger.debug("Code-4 artifact %s has no quiz/flashcards signal", _text(row.get(0)))
    return EntityKind.QUIZ


def _customization_kind(node: Node | None) -> EntityKind | None:
    """Kind from an ``[x, inner]`` customization pair, if it is one."""
    if not isinstance(node, ListNode) or len(node) < 2:
        return None
    inner = node.items[1]
    if not isinstance(inner, ListNode):
        return None
    if len(inner) == 8 and isinstance(inner.items[7], ListNode):
        return EntityKind.QUIZ
    if len(inner) == 7 and isinstance(inner.items[6], ListNode):
        return EntityKind.FLASHCARDS
    return None


def _is_flashcards_text(text: str) -> bool:
    return "flashcards" in text.lower()


def _is_quiz_text(text: str) -> bool:
    return '"quiz"' in text or "&quot;quiz&quot;" in text


# ─── Codes 3 and 1: media vs report ────────────────────────────────────────────


def _has_marker(row: ListNode, predicate) -> bool:
    if any(predicate(text) for text in iter_text(row, KIND_SCAN_DEPTH)):
        return True
    return predicate(stringify(row))


def _is_video_text(text: str) -> bool:
    return any(marker in text for marker in VIDEO_MARKERS)


def _is_audio_text(text: str) -> bool:
    if any(marker in text for marker in AUDIO_MARKERS):
        return True
    lowered = text.lower()
    return any(keyword in lowered for keyword in AUDIO_KEYWORDS)


# ─── Media URLs ────────────────────────────────────────────────────────────────


def _is_media_url(text: str) -> bool:
    return text.startswith("http") and any(fragment in text for fragment in CDN_FRAGMENTS)


def _pair_url(node: Node | None) -> str | None:
    if isinstance(node, ListNode) and len(node) > 1 and isinstance(node.items[0], Null):
        url = _text(node.items[1])
        if url and _is_media_url(url):
            return url
    return None


def _media_url_at(row: ListNode, position: int) -> str | None:
    node = row.get(position)
    url = _pair_url(node)
    if url:
        return url
    text = _text(node)
    if text and _is_media_url(text):
        return text
    return None


def _text(node: Node | None) -> str | None:
    return node.value if isinstance(node, Text) else None


def _is_entity_id(node: Node | None) -> bool:
    text = _text(node)
    return text is not None and len(text) > MIN_ID_LENGTH


def _is_row_holder(node: ListNode) -> bool:
    inner = node.get(0)
    return len(node) == 1 and isinstance(inner, ListNode) and not isinstance(inner.get(0), ListNode)
