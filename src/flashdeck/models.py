"""Core domain models for cards, decks, and duplicate detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

UNCATEGORIZED = "Uncategorized"
LEARNING = "Learning"
LEARNT = "Learnt"
SYSTEM_DECK_NAMES = (UNCATEGORIZED, LEARNING, LEARNT)

# Learning/Learnt membership is owned by the statistics engine.
STATS_DECK_NAMES = (LEARNING, LEARNT)

TEXT_FIELDS = (
    "meaning",
    "example",
    "article",
    "plural",
    "past_tense",
    "future_tense",
    "past_participle",
)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid4()).upper()


def utc_now() -> str:
    """Return the current UTC time as an ISO timestamp."""
    return datetime.now(UTC).isoformat()


@dataclass
class Card:
    """One vocabulary card."""

    word: str
    meaning: str
    example: str = ""
    deck_ids: set[str] = field(default_factory=set)
    attempts: int = 0
    successes: int = 0
    success_count: int = 0
    article: str | None = None
    plural: str | None = None
    past_tense: str | None = None
    future_tense: str | None = None
    past_participle: str | None = None
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now)


@dataclass
class Deck:
    """Named card collection, optionally nested one level under a parent."""

    name: str
    parent_id: str | None = None
    sub_deck_ids: set[str] = field(default_factory=set)
    is_editable: bool = True
    id: str = field(default_factory=new_id)

    @property
    def is_sub_deck(self) -> bool:
        return self.parent_id is not None

    @property
    def is_system_deck(self) -> bool:
        return not self.is_editable


class CardStatus(str, Enum):
    """Swipe verdict stored in the legacy card-status side table."""

    KNOWN = "known"
    UNKNOWN = "unknown"


class MergeStrategy(str, Enum):
    """How an incoming entry is folded into an existing duplicate card."""

    KEEP_EXISTING = "keep_existing"
    REPLACE_WITH_NEW = "replace_with_new"
    MERGE_ADDITIONAL_FIELDS = "merge_additional_fields"


class DuplicateKind(str, Enum):
    NONE = "none"
    EXACT = "exact"
    PARTIAL = "partial"


@dataclass(frozen=True)
class CardEntry:
    """Unsaved card fields as typed by the user or read from a file."""

    word: str
    meaning: str
    example: str = ""
    article: str = ""
    plural: str = ""
    past_tense: str = ""
    future_tense: str = ""
    past_participle: str = ""

    def text_fields(self) -> dict[str, str]:
        """Return trimmed values keyed by card attribute name."""
        return {name: getattr(self, name).strip() for name in TEXT_FIELDS}


@dataclass(frozen=True)
class CardComparison:
    """Field-level difference between an existing card and a new entry."""

    existing_filled_fields: int
    new_filled_fields: int
    field_differences: dict[str, tuple[str, str]]
    new_fields_count: int

    @property
    def has_more_information(self) -> bool:
        return self.new_fields_count > 0


@dataclass(frozen=True)
class DuplicateCheck:
    """Outcome of looking up an entry's word among existing cards."""

    kind: DuplicateKind
    card: Card | None = None
    comparison: CardComparison | None = None


def card_text(card: Card, name: str) -> str:
    """Return one text attribute of a card, trimmed, with None as empty."""
    value = getattr(card, name)
    return (value or "").strip()
