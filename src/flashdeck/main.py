"""CLI entrypoint for managing and studying flashcard decks."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from pathlib import Path

from .config import Settings, get_settings
from .gateway import SqliteGateway
from .models import Card
from .store import DeckStore

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
MAX_REPORTED_ERRORS = 5


def _store(settings: Settings) -> DeckStore:
    """Create the store over the local SQLite database."""
    return DeckStore(SqliteGateway(settings.db_path))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flashdeck", description="Flashcard deck manager")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("decks", help="List decks with card counts")

    export_parser = commands.add_parser("export", help="Export cards to CSV")
    export_parser.add_argument("--deck", help="Export only this deck (exact name)")
    export_parser.add_argument("--output", "-o", help="Write to this file instead of stdout")

    import_parser = commands.add_parser("import", help="Import cards from a CSV file")
    import_parser.add_argument("path")

    study_parser = commands.add_parser("study", help="Study cards that need the most practice")
    study_parser.add_argument("--deck", help="Study only this deck (exact name)")
    study_parser.add_argument("--limit", type=int, default=10)

    reset_parser = commands.add_parser("reset-stats", help="Zero all learning statistics")
    reset_parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    return parser


def run(argv: list[str] | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    store = _store(settings)
    try:
        if args.command == "export":
            return _export_flow(store, args.deck, args.output, print_fn)
        if args.command == "import":
            return _import_flow(store, args.path, print_fn)
        if args.command == "study":
            return _study_flow(store, args.deck, args.limit, input_fn, print_fn)
        if args.command == "reset-stats":
            return _reset_flow(store, args.yes, input_fn, print_fn)
        return _decks_flow(store, print_fn)
    finally:
        store.close()


def _decks_flow(store: DeckStore, print_fn: PrintFn) -> int:
    """Print decks in hierarchical order."""
    print_fn("=== Decks ===")
    for deck in store.list_all_decks_hierarchical():
        label = f"  ↳ {deck.name}" if deck.is_sub_deck else deck.name
        count = store.total_cards_in_hierarchy(deck.id)
        suffix = " [system]" if deck.is_system_deck else ""
        print_fn(f"{label} ({count} cards){suffix}")
    print_fn(f"Total cards: {len(store.cards)}")
    return 0


def _export_flow(store: DeckStore, deck_name: str | None, output: str | None, print_fn: PrintFn) -> int:
    """Export all cards or one deck to CSV."""
    deck_id = None
    if deck_name is not None:
        deck = store.find_deck_by_name(deck_name)
        if deck is None:
            print_fn(f"No deck named '{deck_name}'.")
            return 1
        deck_id = deck.id

    content = store.export_csv(deck_id)
    if output is None:
        print_fn(content.rstrip("\n"))
        return 0
    count = len(store.cards) if deck_id is None else len(store.cards_in_deck(deck_id))
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    print_fn(f"Exported {count} cards to {output}")
    return 0


def _import_flow(store: DeckStore, path_text: str, print_fn: PrintFn) -> int:
    """Import cards from a CSV file and summarise the result."""
    try:
        content = Path(path_text).read_text(encoding="utf-8-sig")
    except OSError as exc:
        print_fn(f"Import failed: {exc}")
        return 1

    result = store.import_csv(content)
    print_fn(f"Successfully imported {result.success_count} cards.")
    if result.errors:
        print_fn("Errors encountered:")
        for error in result.errors[:MAX_REPORTED_ERRORS]:
            print_fn(f"- {error}")
        if len(result.errors) > MAX_REPORTED_ERRORS:
            print_fn(f"... and {len(result.errors) - MAX_REPORTED_ERRORS} more errors")
    if not store.last_save_ok:
        print_fn("Warning: changes could not be saved.")
    return 0


def _study_flow(store: DeckStore, deck_name: str | None, limit: int, input_fn: InputFn, print_fn: PrintFn) -> int:
    """Run one self-graded study round over the weakest cards."""
    deck_id = None
    if deck_name is not None:
        deck = store.find_deck_by_name(deck_name)
        if deck is None:
            print_fn(f"No deck named '{deck_name}'.")
            return 1
        deck_id = deck.id

    cards = store.study_order(deck_id=deck_id)[: max(0, limit)]
    if not cards:
        print_fn("No cards to study.")
        return 0

    print_fn("\n=== Study ===")
    print_fn(f"Cards this round: {len(cards)}")
    print_fn("Answer y or n; type :q to stop.")
    correct_count = 0
    attempted_count = 0
    for card in cards:
        answer = _ask_card(card, input_fn, print_fn)
        if answer is None:
            print_fn(f"\nRound ended early: {correct_count}/{attempted_count} correct")
            return 0
        store.record_shown(card.id, answer)
        attempted_count += 1
        if answer:
            correct_count += 1
        print_fn(f"Mastery: {store.mastery_percentage(card.id)}%")

    print_fn(f"\nRound complete: {correct_count}/{len(cards)} correct")
    return 0


def _ask_card(card: Card, input_fn: InputFn, print_fn: PrintFn) -> bool | None:
    """Show a card and return the learner's verdict, or None to stop."""
    print_fn(f"\nWord: {card.word}")
    while True:
        reply = input_fn("Did you know it? (y/n): ").strip().lower()
        if reply in FLOW_EXIT_COMMANDS:
            return None
        if reply in {"y", "n"}:
            print_fn(f"Meaning: {card.meaning}")
            if card.example:
                print_fn(f"Example: {card.example}")
            return reply == "y"
        print_fn("Invalid choice.")


def _reset_flow(store: DeckStore, confirmed: bool, input_fn: InputFn, print_fn: PrintFn) -> int:
    """Reset learning statistics after confirmation."""
    if not confirmed:
        print_fn("WARNING: This zeroes attempts and successes for every card and empties Learning and Learnt.")
        if input_fn("Type YES to confirm: ").strip() != "YES":
            print_fn("Reset cancelled.")
            return 0
    store.reset_statistics()
    print_fn("Learning statistics reset.")
    return 0


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
