"""Domain entities recovered from positional artifact arrays."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    """Closed set of artifact kinds the client can tell apart."""

    UNKNOWN = "unknown"
    REPORT = "report"
    QUIZ = "quiz"
    FLASHCARDS = "flashcards"
    MIND_MAP = "mind_map"
    INFOGRAPHIC = "infographic"
    SLIDE_DECK = "slide_deck"
    AUDIO = "audio"
    VIDEO = "video"

    @property
    def is_media(self) -> bool:
        return self in MEDIA_KINDS


MEDIA_KINDS = frozenset({EntityKind.AUDIO, EntityKind.VIDEO, EntityKind.INFOGRAPHIC})


class EntityState(str, Enum):
    """Generation state of an artifact."""

    CREATING = "creating"
    READY = "ready"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DomainEntity:
    """One artifact resolved from a batchexecute response."""

    id: str
    kind: EntityKind = EntityKind.UNKNOWN
    state: EntityState = EntityState.CREATING
    title: str | None = None
    source_ids: tuple[str, ...] = ()
    media_url: str | None = None
    type_code: int | float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "state": self.state.value,
            "title": self.title,
            "source_ids": list(self.source_ids),
            "media_url": self.media_url,
            "type_code": self.type_code,
        }
