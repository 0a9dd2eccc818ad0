"""Versioned JSON records for cards, decks, and the card-status side table.

Every historical shape is modelled as its own narrow pydantic schema. Decoding
walks an ordered chain of :class:`SchemaCandidate` entries, newest first, and
the first candidate that validates is upgraded into current domain objects.
Callers re-encode anything that did not come from the current schema so the
fallback runs at most once per stored payload.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import RecordDecodeError, RecordEncodeError
from .models import Card, CardStatus, Deck, new_id, utc_now

logger = logging.getLogger(__name__)

CARD_SCHEMA_VERSION = 5
DECK_SCHEMA_VERSION = 3

T = TypeVar("T")


class DecodeStatus(str, Enum):
    """How a payload was recovered."""

    EMPTY = "empty"
    CURRENT = "current"
    LEGACY = "legacy"
    UNDECODABLE = "undecodable"


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Decoded items plus the schema they were read from."""

    status: DecodeStatus
    items: list[T] = field(default_factory=list)
    schema_version: int | None = None

    @property
    def needs_upgrade(self) -> bool:
        return self.status is DecodeStatus.LEGACY


@dataclass(frozen=True)
class SchemaCandidate(Generic[T]):
    """One entry in a fallback chain."""

    version: int
    parse: Callable[[Any], Any]
    upgrade: Callable[[Any], list[T]]


# ---------- Current schemas ----------


class CardRecord(BaseModel):
    id: str
    word: str
    meaning: str
    example: str = ""
    deck_ids: list[str] = Field(default_factory=list)
    attempts: int = Field(0, ge=0)
    successes: int = Field(0, ge=0)
    success_count: int = Field(0, ge=0)
    article: str | None = None
    plural: str | None = None
    past_tense: str | None = None
    future_tense: str | None = None
    past_participle: str | None = None
    created_at: str


class CardCollectionRecord(BaseModel):
    schema_version: Literal[5]
    cards: list[CardRecord]


class DeckRecord(BaseModel):
    id: str
    name: str
    parent_id: str | None = None
    sub_deck_ids: list[str] = Field(default_factory=list)
    is_editable: bool = True


class DeckCollectionRecord(BaseModel):
    schema_version: Literal[3]
    decks: list[DeckRecord]


# ---------- Legacy card schemas (bare arrays, camelCase keys) ----------


class CardRecordV4(BaseModel):
    """Multi-deck membership as a set of ids."""

    id: str
    word: str
    definition: str
    example: str = ""
    deckIds: list[str]
    successCount: int = 0
    article: str | None = None
    pastTense: str | None = None
    futureTense: str | None = None


class CardRecordV3(BaseModel):
    """Single optional deck id."""

    id: str
    word: str
    definition: str
    example: str = ""
    deckId: str | None = None
    successCount: int = 0


class CardRecordV2(BaseModel):
    """No deck membership."""

    id: str
    word: str
    definition: str
    example: str = ""
    successCount: int


class CardRecordV1(BaseModel):
    """Original shape: text only."""

    id: str | None = None
    word: str
    definition: str
    example: str = ""


# ---------- Legacy deck schemas ----------


class DeckRecordV2(BaseModel):
    id: str
    name: str
    parentId: str | None = None
    subDeckIds: list[str]
    isEditable: bool = True


class DeckRecordV1(BaseModel):
    id: str
    name: str


_CURRENT_CARDS = TypeAdapter(CardCollectionRecord)
_CURRENT_DECKS = TypeAdapter(DeckCollectionRecord)
_CARDS_V4 = TypeAdapter(list[CardRecordV4])
_CARDS_V3 = TypeAdapter(list[CardRecordV3])
_CARDS_V2 = TypeAdapter(list[CardRecordV2])
_CARDS_V1 = TypeAdapter(list[CardRecordV1])
_DECKS_V2 = TypeAdapter(list[DeckRecordV2])
_DECKS_V1 = TypeAdapter(list[DeckRecordV1])
_STATUS_MAP = TypeAdapter(dict[str, CardStatus])
_STATUS_PAIRS = TypeAdapter(list[str])


def _card_from_record(record: CardRecord) -> Card:
    attempts = record.attempts
    return Card(
        id=record.id,
        word=record.word,
        meaning=record.meaning,
        example=record.example,
        deck_ids=set(record.deck_ids),
        attempts=attempts,
        successes=min(record.successes, attempts),
        success_count=record.success_count,
        article=record.article,
        plural=record.plural,
        past_tense=record.past_tense,
        future_tense=record.future_tense,
        past_participle=record.past_participle,
        created_at=record.created_at,
    )


def _upgrade_current_cards(parsed: CardCollectionRecord) -> list[Card]:
    return [_card_from_record(record) for record in parsed.cards]


def _upgrade_v4(parsed: list[CardRecordV4]) -> list[Card]:
    now = utc_now()
    return [
        Card(
            id=record.id,
            word=record.word,
            meaning=record.definition,
            example=record.example,
            deck_ids=set(record.deckIds),
            success_count=max(0, record.successCount),
            article=record.article,
            past_tense=record.pastTense,
            future_tense=record.futureTense,
            created_at=now,
        )
        for record in parsed
    ]


def _upgrade_v3(parsed: list[CardRecordV3]) -> list[Card]:
    if parsed and not any("deckId" in record.model_fields_set for record in parsed):
        raise ValueError("no card carries a deckId key")
    now = utc_now()
    return [
        Card(
            id=record.id,
            word=record.word,
            meaning=record.definition,
            example=record.example,
            deck_ids={record.deckId} if record.deckId else set(),
            success_count=max(0, record.successCount),
            created_at=now,
        )
        for record in parsed
    ]


def _upgrade_v2(parsed: list[CardRecordV2]) -> list[Card]:
    now = utc_now()
    return [
        Card(
            id=record.id,
            word=record.word,
            meaning=record.definition,
            example=record.example,
            success_count=max(0, record.successCount),
            created_at=now,
        )
        for record in parsed
    ]


def _upgrade_v1(parsed: list[CardRecordV1]) -> list[Card]:
    now = utc_now()
    return [
        Card(
            id=record.id or new_id(),
            word=record.word,
            meaning=record.definition,
            example=record.example,
            created_at=now,
        )
        for record in parsed
    ]


def _upgrade_current_decks(parsed: DeckCollectionRecord) -> list[Deck]:
    return [
        Deck(
            id=record.id,
            name=record.name,
            parent_id=record.parent_id,
            sub_deck_ids=set(record.sub_deck_ids),
            is_editable=record.is_editable,
        )
        for record in parsed.decks
    ]


def _upgrade_decks_v2(parsed: list[DeckRecordV2]) -> list[Deck]:
    return [
        Deck(
            id=record.id,
            name=record.name,
            parent_id=record.parentId,
            sub_deck_ids=set(record.subDeckIds),
            is_editable=record.isEditable,
        )
        for record in parsed
    ]


def _upgrade_decks_v1(parsed: list[DeckRecordV1]) -> list[Deck]:
    return [Deck(id=record.id, name=record.name) for record in parsed]


CARD_SCHEMAS: tuple[SchemaCandidate[Card], ...] = (
    SchemaCandidate(CARD_SCHEMA_VERSION, _CURRENT_CARDS.validate_python, _upgrade_current_cards),
    SchemaCandidate(4, _CARDS_V4.validate_python, _upgrade_v4),
    SchemaCandidate(3, _CARDS_V3.validate_python, _upgrade_v3),
    SchemaCandidate(2, _CARDS_V2.validate_python, _upgrade_v2),
    SchemaCandidate(1, _CARDS_V1.validate_python, _upgrade_v1),
)

DECK_SCHEMAS: tuple[SchemaCandidate[Deck], ...] = (
    SchemaCandidate(DECK_SCHEMA_VERSION, _CURRENT_DECKS.validate_python, _upgrade_current_decks),
    SchemaCandidate(2, _DECKS_V2.validate_python, _upgrade_decks_v2),
    SchemaCandidate(1, _DECKS_V1.validate_python, _upgrade_decks_v1),
)


def _load_json(payload: bytes) -> object:
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise RecordDecodeError(f"Payload is not UTF-8 JSON: {exc}") from exc


def decode_with(
    payload: bytes | None, candidates: Sequence[SchemaCandidate[T]], current_version: int
) -> DecodeResult[T]:
    """Decode a payload by trying each schema candidate in order."""
    if payload is None:
        return DecodeResult(status=DecodeStatus.EMPTY)
    try:
        raw = _load_json(payload)
    except RecordDecodeError as exc:
        logger.warning("%s", exc)
        return DecodeResult(status=DecodeStatus.UNDECODABLE)

    for candidate in candidates:
        try:
            parsed = candidate.parse(raw)
            items = candidate.upgrade(parsed)
        except (ValidationError, TypeError, ValueError) as exc:
            logger.debug("Schema v%s rejected payload: %s", candidate.version, exc)
            continue
        status = DecodeStatus.CURRENT if candidate.version == current_version else DecodeStatus.LEGACY
        return DecodeResult(status=status, items=items, schema_version=candidate.version)

    logger.warning("Payload matched none of %d known schemas.", len(candidates))
    return DecodeResult(status=DecodeStatus.UNDECODABLE)


def decode_cards(payload: bytes | None) -> DecodeResult[Card]:
    """Decode a card collection written by any known app version."""
    return decode_with(payload, CARD_SCHEMAS, CARD_SCHEMA_VERSION)


def decode_decks(payload: bytes | None) -> DecodeResult[Deck]:
    """Decode a deck collection written by any known app version."""
    return decode_with(payload, DECK_SCHEMAS, DECK_SCHEMA_VERSION)


def encode_cards(cards: Sequence[Card]) -> bytes:
    """Encode cards in the current schema."""
    try:
        record = CardCollectionRecord(
            schema_version=CARD_SCHEMA_VERSION,
            cards=[
                CardRecord(
                    id=card.id,
                    word=card.word,
                    meaning=card.meaning,
                    example=card.example,
                    deck_ids=sorted(card.deck_ids),
                    attempts=card.attempts,
                    successes=card.successes,
                    success_count=card.success_count,
                    article=card.article,
                    plural=card.plural,
                    past_tense=card.past_tense,
                    future_tense=card.future_tense,
                    past_participle=card.past_participle,
                    created_at=card.created_at,
                )
                for card in cards
            ],
        )
        return record.model_dump_json().encode("utf-8")
    except (ValidationError, ValueError, TypeError) as exc:
        raise RecordEncodeError(f"Could not encode cards: {exc}") from exc


def encode_decks(decks: Sequence[Deck]) -> bytes:
    """Encode decks in the current schema."""
    try:
        record = DeckCollectionRecord(
            schema_version=DECK_SCHEMA_VERSION,
            decks=[
                DeckRecord(
                    id=deck.id,
                    name=deck.name,
                    parent_id=deck.parent_id,
                    sub_deck_ids=sorted(deck.sub_deck_ids),
                    is_editable=deck.is_editable,
                )
                for deck in decks
            ],
        )
        return record.model_dump_json().encode("utf-8")
    except (ValidationError, ValueError, TypeError) as exc:
        raise RecordEncodeError(f"Could not encode decks: {exc}") from exc


def decode_statuses(payload: bytes | None) -> dict[str, CardStatus]:
    """Decode the card-status side table; anything unreadable yields an empty map."""
    if payload is None:
        return {}
    try:
        raw = _load_json(payload)
    except RecordDecodeError as exc:
        logger.warning("Ignoring card statuses: %s", exc)
        return {}

    try:
        return _STATUS_MAP.validate_python(raw)
    except ValidationError:
        pass

    # Dictionaries keyed by UUID were historically written as [key, value, key, value, ...].
    try:
        flat = _STATUS_PAIRS.validate_python(raw)
        if len(flat) % 2:
            raise ValueError("odd number of entries")
        return {flat[index]: CardStatus(flat[index + 1]) for index in range(0, len(flat), 2)}
    except (ValidationError, ValueError) as exc:
        logger.warning("Ignoring card statuses: %s", exc)
        return {}


def encode_statuses(statuses: dict[str, CardStatus]) -> bytes:
    """Encode the card-status side table as a JSON object."""
    try:
        return _STATUS_MAP.dump_json(dict(sorted(statuses.items())))
    except (ValueError, TypeError) as exc:
        raise RecordEncodeError(f"Could not encode card statuses: {exc}") from exc
