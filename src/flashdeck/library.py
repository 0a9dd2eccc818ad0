"""In-memory card and deck collections with consistent membership."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import (
    STATS_DECK_NAMES,
    SYSTEM_DECK_NAMES,
    TEXT_FIELDS,
    UNCATEGORIZED,
    Card,
    CardComparison,
    CardEntry,
    Deck,
    DuplicateCheck,
    DuplicateKind,
    MergeStrategy,
    card_text,
)

logger = logging.getLogger(__name__)

ANNOTATION_FIELDS = ("article", "plural", "past_tense", "future_tense", "past_participle")


class DeckLibrary:
    """Owns cards and decks and keeps their associations consistent.

    Membership lives only in ``Card.deck_ids``. Deck contents are projected
    from it on demand, so a deck never holds a stale card list. Cards with
    no user deck (Learning and Learnt aside) are shown under the
    Uncategorized system deck.
    """

    def __init__(self, cards: Iterable[Card] = (), decks: Iterable[Deck] = ()) -> None:
        """Adopt loaded collections and make sure the system decks exist."""
        self.cards: list[Card] = list(cards)
        self.decks: list[Deck] = list(decks)
        self.created_system_decks = self.ensure_system_decks()

    # ---------- lookups ----------

    def get_card(self, card_id: str) -> Card | None:
        """Get one card by id."""
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def get_deck(self, deck_id: str) -> Deck | None:
        """Get one deck by id."""
        for deck in self.decks:
            if deck.id == deck_id:
                return deck
        return None

    def find_deck_by_name(self, name: str) -> Deck | None:
        """Return the first deck whose name matches exactly."""
        for deck in self.decks:
            if deck.name == name:
                return deck
        return None

    def system_deck(self, name: str) -> Deck | None:
        """Return the system deck with a reserved name."""
        for deck in self.decks:
            if deck.name == name and deck.is_system_deck:
                return deck
        return None

    def system_deck_id(self, name: str) -> str | None:
        deck = self.system_deck(name)
        return deck.id if deck is not None else None

    # ---------- structural upkeep ----------

    def ensure_system_decks(self) -> bool:
        """Create missing system decks and protect existing ones by name."""
        changed = False
        for name in SYSTEM_DECK_NAMES:
            existing = next(
                (deck for deck in self.decks if deck.name == name and deck.parent_id is None),
                None,
            )
            if existing is None:
                self.decks.append(Deck(name=name, is_editable=False))
                logger.info("Created system deck '%s'.", name)
                changed = True
            elif existing.is_editable:
                existing.is_editable = False
                changed = True
        return changed

    def repair(self) -> bool:
        """Drop dangling references and rebuild sub-deck links from parent ids."""
        changed = False
        deck_ids = {deck.id for deck in self.decks}
        for deck in self.decks:
            if deck.parent_id is not None and deck.parent_id not in deck_ids:
                deck.parent_id = None
                changed = True

        for deck in self.decks:
            children = {child.id for child in self.decks if child.parent_id == deck.id}
            if deck.sub_deck_ids != children:
                deck.sub_deck_ids = children
                changed = True

        uncategorized_id = self.system_deck_id(UNCATEGORIZED)
        for card in self.cards:
            kept = {deck_id for deck_id in card.deck_ids if deck_id in deck_ids and deck_id != uncategorized_id}
            if kept != card.deck_ids:
                card.deck_ids = kept
                changed = True

        if changed:
            logger.info("Repaired card and deck references.")
        return changed

    def _assignable_ids(self, deck_ids: Iterable[str]) -> set[str]:
        """Keep only ids of existing decks a user may assign cards to."""
        assignable = {deck.id for deck in self.decks if not deck.is_system_deck}
        return {deck_id for deck_id in deck_ids if deck_id in assignable}

    def _stats_ids(self) -> set[str]:
        return {deck.id for deck in self.decks if deck.is_system_deck and deck.name in STATS_DECK_NAMES}

    # ---------- cards ----------

    def create_card(self, entry: CardEntry, deck_ids: Iterable[str] = ()) -> Card:
        """Append a new card assigned to the given user decks."""
        card = Card(
            word=entry.word,
            meaning=entry.meaning,
            example=entry.example,
            deck_ids=self._assignable_ids(deck_ids),
        )
        _apply_annotations(card, entry, overwrite=True)
        self.cards.append(card)
        return card

    def update_card(self, card_id: str, entry: CardEntry, deck_ids: Iterable[str]) -> bool:
        """Replace a card's text and user deck membership in place."""
        card = self.get_card(card_id)
        if card is None:
            return False
        card.word = entry.word
        card.meaning = entry.meaning
        card.example = entry.example
        _apply_annotations(card, entry, overwrite=True)
        card.deck_ids = self._assignable_ids(deck_ids) | (card.deck_ids & self._stats_ids())
        return True

    def delete_cards(self, card_ids: Iterable[str]) -> int:
        """Delete cards by id and return how many were removed."""
        doomed = set(card_ids)
        before = len(self.cards)
        self.cards = [card for card in self.cards if card.id not in doomed]
        return before - len(self.cards)

    def add_card_to_deck(self, card_id: str, deck_id: str) -> bool:
        card = self.get_card(card_id)
        if card is None or not self._assignable_ids([deck_id]):
            return False
        card.deck_ids.add(deck_id)
        return True

    def remove_card_from_deck(self, card_id: str, deck_id: str) -> bool:
        """Remove one user membership; an emptied card falls back to Uncategorized."""
        card = self.get_card(card_id)
        if card is None or deck_id not in card.deck_ids:
            return False
        if deck_id in self._stats_ids():
            return False
        card.deck_ids.discard(deck_id)
        return True

    # ---------- decks ----------

    def create_deck(self, name: str, parent_id: str | None = None) -> Deck | None:
        """Create a top-level deck, or a sub-deck under an ordinary top-level deck."""
        trimmed = name.strip()
        if not trimmed:
            return None
        if parent_id is None:
            if self.find_deck_by_name(trimmed) is not None:
                return None
            deck = Deck(name=trimmed)
            self.decks.append(deck)
            return deck

        parent = self.get_deck(parent_id)
        if parent is None or parent.is_system_deck or parent.is_sub_deck:
            return None
        deck = Deck(name=trimmed, parent_id=parent.id)
        parent.sub_deck_ids.add(deck.id)
        self.decks.append(deck)
        return deck

    def delete_deck(self, deck_id: str) -> bool:
        """Delete a deck and, depth-first, all of its sub-decks."""
        deck = self.get_deck(deck_id)
        if deck is None or deck.is_system_deck:
            return False
        self._delete_subtree(deck)
        return True

    def _delete_subtree(self, deck: Deck) -> None:
        for child_id in sorted(deck.sub_deck_ids):
            child = self.get_deck(child_id)
            if child is not None:
                self._delete_subtree(child)
        for card in self.cards:
            card.deck_ids.discard(deck.id)
        if deck.parent_id is not None:
            parent = self.get_deck(deck.parent_id)
            if parent is not None:
                parent.sub_deck_ids.discard(deck.id)
        self.decks = [item for item in self.decks if item.id != deck.id]

    def rename_deck(self, deck_id: str, new_name: str) -> bool:
        """Rename an ordinary deck when the new name is non-empty, new, and unused."""
        deck = self.get_deck(deck_id)
        if deck is None or deck.is_system_deck:
            return False
        trimmed = new_name.strip()
        if not trimmed or trimmed == deck.name:
            return False
        if any(other.name == trimmed for other in self.decks if other.id != deck.id):
            return False
        deck.name = trimmed
        return True

    def list_decks(self) -> list[Deck]:
        return list(self.decks)

    def list_top_level_decks(self) -> list[Deck]:
        return sorted((deck for deck in self.decks if deck.parent_id is None), key=lambda item: item.name)

    def list_sub_decks(self, parent_id: str) -> list[Deck]:
        return sorted((deck for deck in self.decks if deck.parent_id == parent_id), key=lambda item: item.name)

    def list_all_decks_hierarchical(self) -> list[Deck]:
        """Return top-level decks by name, each followed by its sub-decks by name."""
        ordered: list[Deck] = []
        for deck in self.list_top_level_decks():
            ordered.append(deck)
            ordered.extend(self.list_sub_decks(deck.id))
        return ordered

    def selectable_decks(self) -> list[Deck]:
        """Decks a user may assign cards to, in hierarchical order."""
        return [deck for deck in self.list_all_decks_hierarchical() if not deck.is_system_deck]

    # ---------- projections ----------

    def cards_in_deck(self, deck_id: str) -> list[Card]:
        """Project a deck's cards from card membership, oldest first."""
        if deck_id == self.system_deck_id(UNCATEGORIZED):
            stats_ids = self._stats_ids()
            members = [card for card in self.cards if not card.deck_ids - stats_ids]
        else:
            members = [card for card in self.cards if deck_id in card.deck_ids]
        return sorted(members, key=lambda card: card.created_at)

    def cards_in_hierarchy(self, deck_ids: Iterable[str]) -> list[Card]:
        """Distinct cards of the given decks and their sub-decks, in collection order."""
        wanted: set[str] = set()
        for deck_id in deck_ids:
            deck = self.get_deck(deck_id)
            if deck is None:
                continue
            wanted.add(deck.id)
            wanted.update(deck.sub_deck_ids)
        seen: set[str] = set()
        for deck_id in wanted:
            seen.update(card.id for card in self.cards_in_deck(deck_id))
        return [card for card in self.cards if card.id in seen]

    def total_cards_in_hierarchy(self, deck_id: str) -> int:
        return len(self.cards_in_hierarchy([deck_id]))

    # ---------- duplicates ----------

    def check_duplicate(self, entry: CardEntry) -> DuplicateCheck:
        """Look for an existing card with the same word, ignoring case and padding."""
        key = entry.word.strip().lower()
        existing = next((card for card in self.cards if card.word.strip().lower() == key), None)
        if existing is None:
            return DuplicateCheck(kind=DuplicateKind.NONE)

        incoming = entry.text_fields()
        differences: dict[str, tuple[str, str]] = {}
        new_fields = 0
        for name in TEXT_FIELDS:
            old_value = card_text(existing, name)
            new_value = incoming[name]
            if old_value != new_value:
                differences[name] = (old_value, new_value)
                if not old_value:
                    new_fields += 1
        if not differences:
            return DuplicateCheck(kind=DuplicateKind.EXACT, card=existing)

        comparison = CardComparison(
            existing_filled_fields=1 + sum(1 for name in TEXT_FIELDS if card_text(existing, name)),
            new_filled_fields=(1 if entry.word.strip() else 0) + sum(1 for value in incoming.values() if value),
            field_differences=differences,
            new_fields_count=new_fields,
        )
        return DuplicateCheck(kind=DuplicateKind.PARTIAL, card=existing, comparison=comparison)

    def merge_card_data(
        self, card_id: str, entry: CardEntry, deck_ids: Iterable[str], strategy: MergeStrategy
    ) -> bool:
        """Fold a duplicate entry into an existing card; deck membership is always unioned."""
        card = self.get_card(card_id)
        if card is None:
            return False
        incoming = entry.text_fields()
        if strategy is MergeStrategy.REPLACE_WITH_NEW:
            card.meaning = incoming["meaning"]
            card.example = incoming["example"]
            _apply_annotations(card, entry, overwrite=True)
        elif strategy is MergeStrategy.MERGE_ADDITIONAL_FIELDS:
            if not card_text(card, "meaning") and incoming["meaning"]:
                card.meaning = incoming["meaning"]
            if not card_text(card, "example") and incoming["example"]:
                card.example = incoming["example"]
            _apply_annotations(card, entry, overwrite=False)
        card.deck_ids |= self._assignable_ids(deck_ids)
        return True


def _apply_annotations(card: Card, entry: CardEntry, *, overwrite: bool) -> None:
    """Copy annotation fields from an entry, storing blanks as None."""
    for name in ANNOTATION_FIELDS:
        value = getattr(entry, name).strip() or None
        if overwrite or (not card_text(card, name) and value):
            setattr(card, name, value)
