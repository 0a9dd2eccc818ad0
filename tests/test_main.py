import random
from pathlib import Path
from typing import Any

import flashdeck.main as main
from flashdeck.gateway import MemoryGateway
from flashdeck.models import LEARNT, CardEntry
from flashdeck.store import DeckStore


class ClosingGateway(MemoryGateway):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    def close(self) -> None:
        self.closed = True


def _seeded_store() -> DeckStore:
    store = DeckStore(ClosingGateway(), rng=random.Random(5))
    parent = store.create_deck("A1")
    food = store.create_deck("Food", parent.id)
    store.create_card(CardEntry(word="brood", meaning="bread", example="Vers brood."), [food.id])
    store.create_card(CardEntry(word="hallo", meaning="hello"))
    return store


def _patch_store(monkeypatch: Any, store: DeckStore) -> None:
    monkeypatch.setattr(main, "_store", lambda settings: store)


def test_run_defaults_to_deck_listing(monkeypatch: Any) -> None:
    store = _seeded_store()
    _patch_store(monkeypatch, store)
    outputs: list[str] = []

    code = main.run([], print_fn=outputs.append)

    assert code == 0
    assert outputs[0] == "=== Decks ==="
    assert "A1 (1 cards)" in outputs
    assert "  ↳ Food (1 cards)" in outputs
    assert "Uncategorized (1 cards) [system]" in outputs
    assert outputs[-1] == "Total cards: 2"
    assert store.gateway.closed is True


def test_export_to_stdout(monkeypatch: Any) -> None:
    _patch_store(monkeypatch, _seeded_store())
    outputs: list[str] = []

    code = main.run(["export", "--deck", "Food"], print_fn=outputs.append)

    assert code == 0
    lines = outputs[0].splitlines()
    assert lines[0].startswith("Word,Definition,Example")
    assert lines[1].startswith("brood,bread,Vers brood.")
    assert len(lines) == 2


def test_export_to_file(monkeypatch: Any, tmp_path: Path) -> None:
    _patch_store(monkeypatch, _seeded_store())
    outputs: list[str] = []
    target = tmp_path / "out" / "cards.csv"

    code = main.run(["export", "--output", str(target)], print_fn=outputs.append)

    assert code == 0
    assert outputs == [f"Exported 2 cards to {target}"]
    assert target.read_text(encoding="utf-8").count("\n") == 3


def test_export_unknown_deck(monkeypatch: Any) -> None:
    _patch_store(monkeypatch, _seeded_store())
    outputs: list[str] = []

    code = main.run(["export", "--deck", "Nope"], print_fn=outputs.append)

    assert code == 1
    assert outputs == ["No deck named 'Nope'."]


def test_import_reports_counts_and_errors(monkeypatch: Any, tmp_path: Path) -> None:
    store = DeckStore(MemoryGateway())
    _patch_store(monkeypatch, store)
    source = tmp_path / "cards.csv"
    rows = ["Word,Definition,Example,Article,Past Tense,Future Tense,Decks"]
    rows.append("fiets,bicycle,,de,,,Transport")
    rows.extend(f",missing {index}" for index in range(7))
    source.write_text("\ufeff" + "\n".join(rows) + "\n", encoding="utf-8")
    outputs: list[str] = []

    code = main.run(["import", str(source)], print_fn=outputs.append)

    assert code == 0
    assert outputs[0] == "Successfully imported 1 cards."
    assert "Errors encountered:" in outputs
    assert sum(1 for line in outputs if line.startswith("- Line")) == 5
    assert outputs[-1] == "... and 2 more errors"
    assert store.cards[0].word == "fiets"
    assert store.find_deck_by_name("Transport") is not None


def test_import_missing_file(monkeypatch: Any, tmp_path: Path) -> None:
    _patch_store(monkeypatch, DeckStore(MemoryGateway()))
    outputs: list[str] = []

    code = main.run(["import", str(tmp_path / "absent.csv")], print_fn=outputs.append)

    assert code == 1
    assert outputs[0].startswith("Import failed:")


def test_study_round_records_answers(monkeypatch: Any) -> None:
    store = _seeded_store()
    _patch_store(monkeypatch, store)
    inputs = iter(["maybe", "y", "n"])
    outputs: list[str] = []

    code = main.run(["study"], input_fn=lambda _: next(inputs), print_fn=outputs.append)

    assert code == 0
    assert "Invalid choice." in outputs
    assert any(line.startswith("Meaning: ") for line in outputs)
    assert "Mastery: 100%" in outputs
    assert "Mastery: 0%" in outputs
    assert outputs[-1] == "\nRound complete: 1/2 correct"
    assert sorted((card.attempts, card.successes) for card in store.cards) == [(1, 0), (1, 1)]


def test_study_round_can_stop_early(monkeypatch: Any) -> None:
    store = _seeded_store()
    _patch_store(monkeypatch, store)
    inputs = iter(["y", ":q"])
    outputs: list[str] = []

    code = main.run(["study", "--limit", "5"], input_fn=lambda _: next(inputs), print_fn=outputs.append)

    assert code == 0
    assert outputs[-1] == "\nRound ended early: 1/1 correct"
    assert sum(card.attempts for card in store.cards) == 1


def test_study_limited_to_deck(monkeypatch: Any) -> None:
    _patch_store(monkeypatch, _seeded_store())
    inputs = iter(["y"])
    outputs: list[str] = []

    main.run(["study", "--deck", "Food"], input_fn=lambda _: next(inputs), print_fn=outputs.append)

    assert "Word: brood" in "".join(outputs)
    assert "Word: hallo" not in "".join(outputs)
    assert outputs[-1] == "\nRound complete: 1/1 correct"


def test_study_without_cards(monkeypatch: Any) -> None:
    _patch_store(monkeypatch, DeckStore(MemoryGateway()))
    outputs: list[str] = []

    assert main.run(["study"], print_fn=outputs.append) == 0
    assert outputs == ["No cards to study."]


def test_reset_requires_confirmation(monkeypatch: Any) -> None:
    store = _seeded_store()
    for card in store.cards:
        store.record_shown(card.id, True)
    _patch_store(monkeypatch, store)
    outputs: list[str] = []

    main.run(["reset-stats"], input_fn=lambda _: "no", print_fn=outputs.append)
    assert outputs[-1] == "Reset cancelled."
    assert all(card.attempts == 1 for card in store.cards)

    main.run(["reset-stats"], input_fn=lambda _: "YES", print_fn=outputs.append)
    assert outputs[-1] == "Learning statistics reset."
    assert all(card.attempts == 0 for card in store.cards)


def test_reset_with_yes_flag_skips_prompt(monkeypatch: Any) -> None:
    store = _seeded_store()
    card = store.cards[0]
    for _ in range(3):
        store.record_shown(card.id, True)
    _patch_store(monkeypatch, store)

    def fail_input(_: str) -> str:
        raise AssertionError("prompted")

    assert main.run(["reset-stats", "--yes"], input_fn=fail_input, print_fn=lambda _: None) == 0
    assert store.cards_in_deck(store.library.system_deck_id(LEARNT)) == []
