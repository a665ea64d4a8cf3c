import json

import pytest

from quizdeck.core.deck_importer import DeckImportError, load_deck_from_file, parse_deck_text
from quizdeck.core.models import ChoiceSlide, InfoSlide, OpenSlide

DECK_TEXT = """TITLE: Fractions warm-up

INFO: Welcome
Today we compare fractions.

---
Q: Which is larger?
Think before answering.
A: 1/2
B: 1/3
CORRECT: a

Q: What is $\\frac{1}{2} + \\frac{1}{4}$?
ANSWER: 3/4 | 0.75
"""


def test_parse_text_deck():
    deck = parse_deck_text(DECK_TEXT, deck_id="fractions")

    assert deck.title == "Fractions warm-up"
    assert [slide.id for slide in deck.slides] == ["s1", "s2", "s3"]
    info, choice, open_slide = deck.slides
    assert isinstance(info, InfoSlide) and info.content == "Today we compare fractions."
    assert isinstance(choice, ChoiceSlide)
    assert choice.prompt == "Which is larger?\nThink before answering."
    assert [(o.id, o.label, o.is_correct) for o in choice.options] == [("a", "A", True), ("b", "B", False)]
    assert isinstance(open_slide, OpenSlide)
    assert open_slide.correct_answers == ["3/4", "0.75"]


def test_title_defaults_to_deck_id():
    assert parse_deck_text("INFO: Hi\nthere", deck_id="intro").title == "intro"


@pytest.mark.parametrize(
    "text, message",
    [
        ("INFO: a\n\nTITLE: late", "TITLE"),
        ("Q: Pick\nA: one\nCORRECT: A", "two options"),
        ("Q: Pick\nA: one\nC: three\nCORRECT: A", "consecutively"),
        ("Q: Pick\nA: one\nB: two", "CORRECT"),
        ("Q: Pick\nA: one\nB: two\nCORRECT: D", "CORRECT must be one of"),
        ("Q: Pick\nA: one\nB: two\nANSWER: 1", "both options"),
        ("A: one\nB: two\nCORRECT: A", "Question text missing"),
    ],
)
def test_malformed_blocks_are_rejected(text, message):
    with pytest.raises(DeckImportError, match=message):
        parse_deck_text(text)


def test_load_text_file_uses_file_name_as_id(tmp_path):
    path = tmp_path / "Week 3 Fractions.txt"
    path.write_text(DECK_TEXT, encoding="utf-8")

    imported = load_deck_from_file(path)

    assert imported.source_path == path
    assert imported.deck.id == "week-3-fractions"
    assert imported.deck.slide_count == 3


def test_load_json_deck(tmp_path, deck):
    path = tmp_path / "deck.json"
    path.write_text(json.dumps(deck.to_record()), encoding="utf-8")

    imported = load_deck_from_file(path)

    assert imported.deck.title == "Fractions warm-up"
    assert [slide.id for slide in imported.deck.slides] == ["intro", "q1", "q2", "outro"]
    assert imported.deck.slides[1].correct_option_id() == "a"


def test_load_rejects_empty_and_invalid_files(tmp_path):
    empty = tmp_path / "empty.txt"
    empty.write_text("\n\n", encoding="utf-8")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(DeckImportError):
        load_deck_from_file(empty)
    with pytest.raises(DeckImportError):
        load_deck_from_file(broken)
