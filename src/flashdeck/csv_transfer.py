"""CSV exchange format for bulk card import and export."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from io import StringIO

from .errors import CsvImportError
from .models import STATS_DECK_NAMES, UNCATEGORIZED, Card, CardEntry

logger = logging.getLogger(__name__)

HEADER = (
    "Word",
    "Definition",
    "Example",
    "Article",
    "Past Tense",
    "Future Tense",
    "Decks",
    "Success Count",
    "Times Shown",
    "Times Correct",
    "Plural",
    "Past Participle",
)
DECK_SEPARATOR = "; "


@dataclass(frozen=True)
class CsvCardRow:
    """One accepted data row, not yet bound to any deck ids."""

    line_number: int
    entry: CardEntry
    deck_names: tuple[str, ...]
    success_count: int
    attempts: int
    successes: int


@dataclass
class ParsedCsv:
    """Accepted rows and per-line error messages from one payload."""

    rows: list[CsvCardRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _card_row(card: Card, deck_names: Mapping[str, str]) -> list[str]:
    names = sorted(
        deck_names[deck_id]
        for deck_id in card.deck_ids
        if deck_id in deck_names and deck_names[deck_id] not in STATS_DECK_NAMES
    )
    return [
        card.word,
        card.meaning,
        card.example,
        card.article or "",
        card.past_tense or "",
        card.future_tense or "",
        DECK_SEPARATOR.join(names) if names else UNCATEGORIZED,
        str(card.success_count),
        str(card.attempts),
        str(card.successes),
        card.plural or "",
        card.past_participle or "",
    ]


def export_cards(cards: Iterable[Card], deck_names: Mapping[str, str]) -> str:
    """Render cards as CSV text with a header row.

    ``deck_names`` maps deck id to name; ids missing from it are skipped.
    Fields holding a delimiter, a quote, or a line break are quoted with
    embedded quotes doubled.
    """
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for card in cards:
        writer.writerow(_card_row(card, deck_names))
    return buffer.getvalue()


def read_records(text: str) -> Iterator[tuple[int, list[str]]]:
    """Yield ``(record_number, fields)`` for every non-blank line.

    Quoted fields may span lines. Numbering starts at 1 for the header.
    Comma-only rows are kept so the caller can report them.
    """
    number = 0
    for row in csv.reader(StringIO(text)):
        if not row or (len(row) == 1 and not row[0].strip()):
            continue
        number += 1
        yield number, row


def _int_field(fields: list[str], index: int) -> int:
    if index >= len(fields):
        return 0
    try:
        return max(0, int(fields[index]))
    except ValueError:
        return 0


def _text_field(fields: list[str], index: int) -> str:
    return fields[index] if index < len(fields) else ""


def parse_csv(text: str) -> ParsedCsv:
    """Parse CSV text into card rows, collecting per-line errors.

    Columns are positional; the header row is skipped without validation.
    Raises :class:`CsvImportError` only when there is no data row at all.
    """
    records = list(read_records(text))
    if len(records) < 2:
        raise CsvImportError("CSV file is empty or has no data rows.")

    parsed = ParsedCsv()
    for line_number, raw_fields in records[1:]:
        fields = [value.strip() for value in raw_fields]
        word = _text_field(fields, 0)
        meaning = _text_field(fields, 1)
        if not word or not meaning:
            logger.debug("Skipping CSV line %d: missing word or definition", line_number)
            parsed.errors.append(f"Line {line_number}: word and definition are required.")
            continue

        deck_names = tuple(
            name.strip() for name in _text_field(fields, 6).split(";") if name.strip()
        )
        attempts = _int_field(fields, 8)
        parsed.rows.append(
            CsvCardRow(
                line_number=line_number,
                entry=CardEntry(
                    word=word,
                    meaning=meaning,
                    example=_text_field(fields, 2),
                    article=_text_field(fields, 3),
                    past_tense=_text_field(fields, 4),
                    future_tense=_text_field(fields, 5),
                    plural=_text_field(fields, 10),
                    past_participle=_text_field(fields, 11),
                ),
                deck_names=deck_names,
                success_count=_int_field(fields, 7),
                attempts=attempts,
                successes=min(_int_field(fields, 9), attempts),
            )
        )
    return parsed
