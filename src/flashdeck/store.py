"""Application store: the single entry point for reading and changing card data."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass

from .csv_transfer import export_cards, parse_csv
from .errors import CsvImportError, PersistenceError, RecordEncodeError
from .gateway import CARD_STATUS_KEY, CARDS_KEY, DECKS_KEY, PersistenceGateway
from .learning import LearningTracker, mastery_percentage, sort_for_study
from .library import DeckLibrary
from .models import (
    STATS_DECK_NAMES,
    UNCATEGORIZED,
    Card,
    CardEntry,
    CardStatus,
    Deck,
    DuplicateCheck,
    MergeStrategy,
)
from .records import (
    DecodeStatus,
    decode_cards,
    decode_decks,
    decode_statuses,
    encode_cards,
    encode_decks,
    encode_statuses,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadReport:
    """What startup found in the gateway and what it had to fix."""

    cards: DecodeStatus
    decks: DecodeStatus
    card_schema_version: int | None
    deck_schema_version: int | None
    status_entries: int
    repaired: bool
    read_failed: bool

    @property
    def upgraded(self) -> bool:
        return DecodeStatus.LEGACY in (self.cards, self.decks)

    @property
    def writable(self) -> bool:
        """Whether startup may overwrite what is stored."""
        return not self.read_failed and DecodeStatus.UNDECODABLE not in (self.cards, self.decks)


@dataclass(frozen=True)
class ImportResult:
    """Summary emitted by CSV import."""

    success_count: int
    errors: tuple[str, ...]


class DeckStore:
    """Coordinates the card library, learning statistics, and persistence.

    Every state-changing call is followed by a save of all collections.
    A failed save is logged and reported through ``last_save_ok``; the
    in-memory state is kept either way.
    """

    def __init__(self, gateway: PersistenceGateway, rng: random.Random | None = None) -> None:
        """Load persisted state through the gateway, upgrading legacy records."""
        self.gateway = gateway
        self.last_save_ok = True
        self._rng = rng
        self.load_report = self._load()
        if self.load_report.writable and (self.load_report.upgraded or self.load_report.repaired):
            logger.info("Writing upgraded records back in the current schema.")
            self.save_all()

    # ---------- persistence ----------

    def _read(self, key: str) -> tuple[bytes | None, bool]:
        try:
            return self.gateway.load(key), False
        except PersistenceError:
            logger.exception("Could not load '%s'; starting without it.", key)
            return None, True

    def _load(self) -> LoadReport:
        card_bytes, cards_failed = self._read(CARDS_KEY)
        deck_bytes, decks_failed = self._read(DECKS_KEY)
        status_bytes, status_failed = self._read(CARD_STATUS_KEY)

        card_result = decode_cards(card_bytes)
        deck_result = decode_decks(deck_bytes)
        statuses = decode_statuses(status_bytes)
        logger.info(
            "Loaded %d cards (%s, v%s) and %d decks (%s, v%s).",
            len(card_result.items),
            card_result.status.value,
            card_result.schema_version,
            len(deck_result.items),
            deck_result.status.value,
            deck_result.schema_version,
        )

        self.library = DeckLibrary(card_result.items, deck_result.items)
        repaired = self.library.repair()
        self.tracker = LearningTracker(self.library, statuses)
        reconciled = self.tracker.reconcile_statuses()
        return LoadReport(
            cards=card_result.status,
            decks=deck_result.status,
            card_schema_version=card_result.schema_version,
            deck_schema_version=deck_result.schema_version,
            status_entries=len(statuses),
            repaired=repaired or reconciled or self.library.created_system_decks,
            read_failed=cards_failed or decks_failed or status_failed,
        )

    def save_all(self) -> bool:
        """Encode and write every collection; return whether all writes succeeded."""
        try:
            payloads = {
                CARDS_KEY: encode_cards(self.library.cards),
                DECKS_KEY: encode_decks(self.library.decks),
                CARD_STATUS_KEY: encode_statuses(self.tracker.statuses),
            }
        except RecordEncodeError:
            logger.exception("Could not encode collections; nothing was saved.")
            self.last_save_ok = False
            return False

        ok = True
        for key, payload in payloads.items():
            try:
                if self.gateway.save(key, payload) is False:
                    logger.warning("Gateway refused to save '%s'.", key)
                    ok = False
                else:
                    logger.debug("Saved '%s' (%d bytes).", key, len(payload))
            except PersistenceError:
                logger.exception("Could not save '%s'.", key)
                ok = False
        self.last_save_ok = ok
        return ok

    def close(self) -> None:
        """Close resources."""
        close = getattr(self.gateway, "close", None)
        if close is not None:
            close()

    # ---------- reads ----------

    @property
    def cards(self) -> list[Card]:
        return list(self.library.cards)

    @property
    def decks(self) -> list[Deck]:
        return self.library.list_decks()

    def get_card(self, card_id: str) -> Card | None:
        return self.library.get_card(card_id)

    def get_deck(self, deck_id: str) -> Deck | None:
        return self.library.get_deck(deck_id)

    def find_deck_by_name(self, name: str) -> Deck | None:
        return self.library.find_deck_by_name(name)

    def list_top_level_decks(self) -> list[Deck]:
        return self.library.list_top_level_decks()

    def list_sub_decks(self, parent_id: str) -> list[Deck]:
        return self.library.list_sub_decks(parent_id)

    def list_all_decks_hierarchical(self) -> list[Deck]:
        return self.library.list_all_decks_hierarchical()

    def selectable_decks(self) -> list[Deck]:
        return self.library.selectable_decks()

    def cards_in_deck(self, deck_id: str) -> list[Card]:
        return self.library.cards_in_deck(deck_id)

    def total_cards_in_hierarchy(self, deck_id: str) -> int:
        return self.library.total_cards_in_hierarchy(deck_id)

    def check_duplicate(self, entry: CardEntry) -> DuplicateCheck:
        return self.library.check_duplicate(entry)

    def mastery_percentage(self, card_id: str) -> int | None:
        """Return a card's mastery percentage, or None when unknown or unattempted."""
        card = self.library.get_card(card_id)
        return mastery_percentage(card) if card is not None else None

    def card_status(self, card_id: str) -> CardStatus | None:
        return self.tracker.card_status(card_id)

    def study_order(self, card_ids: Iterable[str] | None = None, deck_id: str | None = None) -> list[Card]:
        """Return cards ordered for adaptive study, optionally limited to a deck or id subset."""
        cards = self.library.cards_in_deck(deck_id) if deck_id is not None else list(self.library.cards)
        if card_ids is not None:
            wanted = set(card_ids)
            cards = [card for card in cards if card.id in wanted]
        return sort_for_study(cards, self._rng)

    # ---------- card mutations ----------

    def create_card(self, entry: CardEntry, deck_ids: Iterable[str] = ()) -> Card:
        """Create a card in the given decks."""
        card = self.library.create_card(entry, deck_ids)
        self.save_all()
        return card

    def update_card(self, card_id: str, entry: CardEntry, deck_ids: Iterable[str]) -> bool:
        """Update a card's fields and deck membership."""
        updated = self.library.update_card(card_id, entry, deck_ids)
        if updated:
            self.save_all()
        return updated

    def delete_cards(self, card_ids: Iterable[str]) -> int:
        """Delete cards by id and drop their status entries."""
        doomed = set(card_ids)
        removed = self.library.delete_cards(doomed)
        for card_id in doomed:
            self.tracker.statuses.pop(card_id, None)
        if removed:
            self.save_all()
        return removed

    def add_card_to_deck(self, card_id: str, deck_id: str) -> bool:
        added = self.library.add_card_to_deck(card_id, deck_id)
        if added:
            self.save_all()
        return added

    def remove_card_from_deck(self, card_id: str, deck_id: str) -> bool:
        removed = self.library.remove_card_from_deck(card_id, deck_id)
        if removed:
            self.save_all()
        return removed

    def merge_card_data(
        self, card_id: str, entry: CardEntry, deck_ids: Iterable[str], strategy: MergeStrategy
    ) -> bool:
        """Resolve a duplicate by folding the entry into an existing card."""
        merged = self.library.merge_card_data(card_id, entry, deck_ids, strategy)
        if merged:
            self.save_all()
        return merged

    # ---------- deck mutations ----------

    def create_deck(self, name: str, parent_id: str | None = None) -> Deck | None:
        """Create a deck, or a sub-deck when a parent id is given."""
        deck = self.library.create_deck(name, parent_id)
        if deck is not None:
            self.save_all()
        return deck

    def rename_deck(self, deck_id: str, new_name: str) -> bool:
        renamed = self.library.rename_deck(deck_id, new_name)
        if renamed:
            self.save_all()
        return renamed

    def delete_deck(self, deck_id: str) -> bool:
        """Delete a deck with its sub-decks; system decks are refused."""
        deleted = self.library.delete_deck(deck_id)
        if deleted:
            self.save_all()
        return deleted

    # ---------- learning statistics ----------

    def record_shown(self, card_id: str, was_correct: bool) -> bool:
        """Record one study attempt for a card."""
        recorded = self.tracker.record_shown(card_id, was_correct)
        if recorded:
            self.save_all()
        return recorded

    def reset_statistics(self) -> None:
        """Zero all counters and empty Learning and Learnt."""
        self.tracker.reset_statistics()
        self.save_all()

    def set_card_status(self, card_id: str, status: CardStatus) -> bool:
        stored = self.tracker.set_card_status(card_id, status)
        if stored:
            self.save_all()
        return stored

    # ---------- CSV transfer ----------

    def export_csv(self, deck_id: str | None = None) -> str:
        """Export all cards, or the cards of one deck, as CSV text."""
        cards = self.library.cards if deck_id is None else self.library.cards_in_deck(deck_id)
        return export_cards(cards, self._deck_names())

    def export_decks_csv(self, deck_ids: Iterable[str]) -> str:
        """Export the cards of several decks, including their sub-decks, as CSV text."""
        return export_cards(self.library.cards_in_hierarchy(deck_ids), self._deck_names())

    def _deck_names(self) -> dict[str, str]:
        return {deck.id: deck.name for deck in self.library.decks}

    def import_csv(self, text: str) -> ImportResult:
        """Import cards from CSV text; bad rows are reported, never raised."""
        try:
            parsed = parse_csv(text)
        except CsvImportError as exc:
            return ImportResult(success_count=0, errors=(str(exc),))

        created = 0
        decks_created = False
        for row in parsed.rows:
            deck_ids: set[str] = set()
            for name in row.deck_names:
                if name == UNCATEGORIZED or name in STATS_DECK_NAMES:
                    continue
                deck = self.library.find_deck_by_name(name)
                if deck is None:
                    deck = self.library.create_deck(name)
                    decks_created = decks_created or deck is not None
                if deck is not None:
                    deck_ids.add(deck.id)
            card = self.library.create_card(row.entry, deck_ids)
            self.tracker.set_counters(card.id, row.attempts, row.successes, row.success_count)
            created += 1

        logger.info("Imported %d cards with %d rejected rows.", created, len(parsed.errors))
        if created or decks_created:
            self.save_all()
        return ImportResult(success_count=created, errors=tuple(parsed.errors))
