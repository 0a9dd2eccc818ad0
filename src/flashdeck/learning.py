"""Per-card learning statistics, mastery classification, and study ordering."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from .library import DeckLibrary
from .models import LEARNING, LEARNT, Card, CardStatus

logger = logging.getLogger(__name__)

LEARNT_MIN_ATTEMPTS = 3


def mastery_percentage(card: Card) -> int | None:
    """Return round(successes / attempts * 100), or None for an unattempted card.

    Halves round up, matching how percentages have always been displayed.
    """
    if card.attempts <= 0:
        return None
    return (200 * card.successes + card.attempts) // (2 * card.attempts)


def is_fully_learned(card: Card) -> bool:
    return card.attempts >= LEARNT_MIN_ATTEMPTS and mastery_percentage(card) == 100


def learning_score(card: Card) -> int:
    """Priority for adaptive study; lower means study sooner."""
    percentage = mastery_percentage(card)
    if percentage is None:
        return 0
    score = percentage + min(card.attempts * 10, 100) + min(card.successes * 20, 200)
    if percentage < 50:
        score -= 50
    return score


def sort_for_study(cards: Iterable[Card], rng: random.Random | None = None) -> list[Card]:
    """Order cards by ascending learning score with ties in random order."""
    ordered = list(cards)
    (rng or random).shuffle(ordered)
    ordered.sort(key=learning_score)
    return ordered


class LearningTracker:
    """Records study attempts and keeps Learning/Learnt membership in step with them."""

    def __init__(self, library: DeckLibrary, statuses: dict[str, CardStatus] | None = None) -> None:
        self.library = library
        self.statuses: dict[str, CardStatus] = dict(statuses or {})

    def classify(self, card: Card) -> bool:
        """Place a card in Learning, Learnt, or neither; return whether membership changed."""
        learning_id = self.library.system_deck_id(LEARNING)
        learnt_id = self.library.system_deck_id(LEARNT)
        before = set(card.deck_ids)
        card.deck_ids.difference_update({learning_id, learnt_id})
        if card.attempts > 0:
            target = learnt_id if is_fully_learned(card) else learning_id
            if target is not None:
                card.deck_ids.add(target)
        return card.deck_ids != before

    def classify_all(self) -> bool:
        changed = False
        for card in self.library.cards:
            changed = self.classify(card) or changed
        return changed

    def record_shown(self, card_id: str, was_correct: bool) -> bool:
        """Count one exposure of a card and reclassify it."""
        card = self.library.get_card(card_id)
        if card is None:
            return False
        card.attempts += 1
        if was_correct:
            card.successes += 1
        self.classify(card)
        return True

    def set_counters(self, card_id: str, attempts: int, successes: int, success_count: int | None = None) -> bool:
        """Overwrite a card's counters, clamped to a consistent range, and reclassify it."""
        card = self.library.get_card(card_id)
        if card is None:
            return False
        card.attempts = max(0, attempts)
        card.successes = min(max(0, successes), card.attempts)
        if success_count is not None:
            card.success_count = max(0, success_count)
        self.classify(card)
        return True

    def reset_statistics(self) -> None:
        """Zero every card's counters and empty Learning and Learnt."""
        self.statuses.clear()
        for card in self.library.cards:
            card.attempts = 0
            card.successes = 0
            self.classify(card)

    def set_card_status(self, card_id: str, status: CardStatus) -> bool:
        """Store a swipe verdict; an uncounted card is seeded from it."""
        card = self.library.get_card(card_id)
        if card is None:
            return False
        self.statuses[card_id] = status
        if _seed_from_status(card, status):
            self.classify(card)
        return True

    def card_status(self, card_id: str) -> CardStatus | None:
        return self.statuses.get(card_id)

    def reconcile_statuses(self) -> bool:
        """Fold the legacy status table into counters and reclassify every card.

        Statuses of deleted cards are dropped. A status on a card that has
        never been counted seeds one attempt, successful when known.
        """
        changed = False
        for card_id in list(self.statuses):
            card = self.library.get_card(card_id)
            if card is None:
                del self.statuses[card_id]
                changed = True
                continue
            if _seed_from_status(card, self.statuses[card_id]):
                changed = True
        if changed:
            logger.info("Reconciled legacy card statuses into counters.")
        return self.classify_all() or changed


def _seed_from_status(card: Card, status: CardStatus) -> bool:
    if card.attempts > 0:
        return False
    card.attempts = 1
    card.successes = 1 if status is CardStatus.KNOWN else 0
    return True
