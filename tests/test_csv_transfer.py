import pytest

from flashdeck.csv_transfer import HEADER, export_cards, parse_csv, read_records
from flashdeck.errors import CsvImportError
from flashdeck.models import Card


def test_export_quotes_only_when_needed() -> None:
    cards = [
        Card(word="plain", meaning="a, b"),
        Card(word="zeggen", meaning="to say", example='He said, "hello"'),
        Card(word="regel", meaning="line", example="two\nlines"),
    ]
    lines = export_cards(cards, {}).split("\n")

    assert lines[1].startswith('plain,"a, b",,')
    assert lines[2].startswith('zeggen,to say,"He said, ""hello""",')
    assert lines[3] == 'regel,line,"two'
    assert lines[4].startswith('lines",')


def test_read_records_handles_quotes_and_escaped_quotes() -> None:
    text = 'h\nHallo,Hello,"Hallo, hoe gaat het?",,\na,"He said, ""hello""",c\n'
    records = list(read_records(text))

    assert records[1] == (2, ["Hallo", "Hello", "Hallo, hoe gaat het?", "", ""])
    assert records[2] == (3, ["a", 'He said, "hello"', "c"])


def test_read_records_unmatched_quote_runs_to_end() -> None:
    assert list(read_records('h\na,"b,c\nd')) == [(1, ["h"]), (2, ["a", "b,c\nd"])]


def test_export_header_and_rows() -> None:
    card = Card(
        word="Brood",
        meaning="Bread",
        example="Ik eet brood met kaas",
        deck_ids={"d2", "d1", "missing"},
        attempts=5,
        successes=3,
        success_count=3,
        article="het",
    )
    lonely = Card(word="Hallo", meaning="Hello")
    text = export_cards([card, lonely], {"d1": "A1 - Food & Drinks", "d2": "Basics"})

    lines = text.splitlines()
    assert lines[0] == ",".join(HEADER)
    assert lines[1] == "Brood,Bread,Ik eet brood met kaas,het,,,A1 - Food & Drinks; Basics,3,5,3,,"
    assert lines[2] == "Hallo,Hello,,,,,Uncategorized,0,0,0,,"
    assert text.endswith("\n")


def test_export_leaves_out_statistics_decks() -> None:
    card = Card(word="x", meaning="y", deck_ids={"d1", "learnt"}, attempts=3, successes=3)
    text = export_cards([card], {"d1": "Verbs", "learnt": "Learnt"})
    assert ",Verbs," in text.splitlines()[1]


def test_quoted_example_survives_export_and_import() -> None:
    original = 'He said, "hello"'
    card = Card(word="zeggen", meaning="to say", example=original)
    text = export_cards([card], {})

    assert '"He said, ""hello"""' in text
    parsed = parse_csv(text)
    assert parsed.errors == []
    assert parsed.rows[0].entry.example == original


def test_quoted_line_break_stays_in_one_record() -> None:
    card = Card(word="regel", meaning="line", example="first\nsecond")
    parsed = parse_csv(export_cards([card, Card(word="b", meaning="c")], {}))

    assert [row.entry.word for row in parsed.rows] == ["regel", "b"]
    assert parsed.rows[0].entry.example == "first\nsecond"
    assert [row.line_number for row in parsed.rows] == [2, 3]


def test_read_records_skips_blank_lines() -> None:
    records = list(read_records("h1,h2\n\n  \na,b\n\nc,d\n"))
    assert records == [(1, ["h1", "h2"]), (2, ["a", "b"]), (3, ["c", "d"])]


def test_import_reports_comma_only_row() -> None:
    parsed = parse_csv("Word,Definition,Example\nkat,cat,\n,,\nhond,dog,\n")

    assert [row.entry.word for row in parsed.rows] == ["kat", "hond"]
    assert parsed.errors == ["Line 3: word and definition are required."]
    assert [row.line_number for row in parsed.rows] == [2, 4]


def test_import_reports_row_missing_word_and_definition() -> None:
    text = "Word,Definition\nHallo,Hello\n,,example only\nBrood,Bread\n"
    parsed = parse_csv(text)

    assert len(parsed.rows) == 2
    assert len(parsed.errors) == 1
    assert "Line 3" in parsed.errors[0]


def test_import_rejects_blank_after_trimming() -> None:
    parsed = parse_csv("h\n   ,meaning\nword,   \n")
    assert parsed.rows == []
    assert [error.split(":")[0] for error in parsed.errors] == ["Line 2", "Line 3"]


def test_import_optional_columns_default() -> None:
    text = (
        "Word,Definition,Example,Article,Past Tense,Future Tense,Decks,Success Count,Times Shown,Times Correct\n"
        'Hallo,Hello,"Hallo, hoe gaat het?",,,,"A1 - Basics",5,10,8\n'
        "Lopen,To walk\n"
        "Zien,To see,,,zag,zal zien,Verbs; Basics ;,x,-3,2\n"
    )
    parsed = parse_csv(text)

    hallo, lopen, zien = parsed.rows
    assert hallo.deck_names == ("A1 - Basics",)
    assert (hallo.success_count, hallo.attempts, hallo.successes) == (5, 10, 8)
    assert hallo.entry.example == "Hallo, hoe gaat het?"
    assert lopen.deck_names == ()
    assert (lopen.success_count, lopen.attempts, lopen.successes) == (0, 0, 0)
    assert zien.deck_names == ("Verbs", "Basics")
    assert zien.entry.past_tense == "zag"
    assert zien.entry.future_tense == "zal zien"
    assert (zien.success_count, zien.attempts, zien.successes) == (0, 0, 0)


def test_import_clamps_successes_to_attempts() -> None:
    parsed = parse_csv("h\nw,m,,,,,,0,2,7\n")
    assert (parsed.rows[0].attempts, parsed.rows[0].successes) == (2, 2)


def test_import_reads_appended_annotation_columns() -> None:
    parsed = parse_csv("h\nboek,book,,het,,,,0,0,0,boeken,\n")
    assert parsed.rows[0].entry.plural == "boeken"
    assert parsed.rows[0].entry.article == "het"


@pytest.mark.parametrize("text", ["", "\n\n", ",".join(HEADER) + "\n"])
def test_empty_or_header_only_payload_raises(text: str) -> None:
    with pytest.raises(CsvImportError):
        parse_csv(text)
