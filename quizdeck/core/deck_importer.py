"""Import slide decks from a human-friendly text file or a JSON export.

Text format (blocks separated by blank lines or '---'):

    TITLE: Deck title            (first block only, optional)

    INFO: Slide title
    Free text shown on the slide (markdown + LaTeX).

    Q: Question text. Additional lines until the next marker belong to it.
    A: First option
    B: Second option
    CORRECT: A                   (choice question, options A-H)

    Q: What is $\\frac{1}{2} + \\frac{1}{4}$?
    ANSWER: 3/4 | 0.75           (open question, any listed answer counts)

JSON decks use the same shape the live session stores under ``quiz``.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
import re

from quizdeck.core.models import (
    ChoiceOption,
    ChoiceSlide,
    InfoSlide,
    OpenSlide,
    Slide,
    SlideDeck,
)


class DeckImportError(Exception):
    """Raised when a deck definition cannot be parsed."""


@dataclass(slots=True)
class ImportedDeck:
    """Container for an imported deck and where it came from."""

    source_path: Path
    deck: SlideDeck


_OPTION_ORDER = ["A", "B", "C", "D", "E", "F", "G", "H"]
_OPTION_LINE = re.compile(r"^([A-Ha-h]):\s*(.*)$")


def load_deck_from_file(file_path: Path) -> ImportedDeck:
    file_path = Path(file_path)
    text = file_path.read_text(encoding="utf-8")
    if file_path.suffix.lower() == ".json":
        deck = parse_deck_json(text)
    else:
        deck = parse_deck_text(text, deck_id=_deck_id_from_path(file_path))
    if not deck.slides:
        raise DeckImportError("Deck file did not contain any slides.")
    return ImportedDeck(source_path=file_path, deck=deck)


def parse_deck_json(text: str) -> SlideDeck:
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise DeckImportError(f"Deck JSON is not valid: {exc}") from exc
    if not isinstance(data, dict):
        raise DeckImportError("Deck JSON must be an object with 'title' and 'slides'.")
    return SlideDeck.from_record(data)


def parse_deck_text(text: str, deck_id: str = "deck") -> SlideDeck:
    title = ""
    slides: list[Slide] = []
    for position, block in enumerate(_split_blocks(text)):
        first_line = block.splitlines()[0].strip()
        if first_line.upper().startswith("TITLE:"):
            if position != 0:
                raise DeckImportError("TITLE may only appear in the first block.")
            title = first_line.split(":", 1)[1].strip()
            continue
        slides.append(_parse_block(block, slide_id=f"s{len(slides) + 1}"))
    return SlideDeck(id=deck_id, title=title or deck_id, slides=slides)


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return blocks


def _parse_block(block: str, slide_id: str) -> Slide:
    lines = [line.strip() for line in block.splitlines() if line.strip()]
    if lines[0].upper().startswith("INFO:"):
        return InfoSlide(
            id=slide_id,
            title=lines[0].split(":", 1)[1].strip(),
            content="\n".join(lines[1:]),
        )

    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    answers: list[str] | None = None
    current_section: str | None = None

    for line in lines:
        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue
        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue
        if upper.startswith("ANSWER:"):
            answers = [part.strip() for part in line.split(":", 1)[1].split("|") if part.strip()]
            current_section = None
            continue
        match = _OPTION_LINE.match(line)
        if match:
            letter = match.group(1).upper()
            options[letter] = match.group(2).strip()
            current_section = letter
            continue
        if current_section == "Q":
            question_lines.append(line)
        elif current_section in options:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise DeckImportError(f"Encountered text outside of a known section: '{line}'.")

    prompt = "\n".join(question_lines).strip()
    if not prompt:
        raise DeckImportError("Question text missing (Q: ...)")

    if answers is not None:
        if options:
            raise DeckImportError("A question cannot have both options and ANSWER.")
        if not answers:
            raise DeckImportError("ANSWER must list at least one accepted answer.")
        return OpenSlide(id=slide_id, prompt=prompt, correct_answers=answers)

    letters = [letter for letter in _OPTION_ORDER if letter in options]
    if len(letters) < 2:
        raise DeckImportError("A choice question needs at least two options.")
    if letters != _OPTION_ORDER[: len(letters)]:
        raise DeckImportError("Options must be lettered consecutively starting at A.")
    if any(not options[letter] for letter in letters):
        raise DeckImportError("Option text cannot be empty.")
    if correct_letter is None:
        raise DeckImportError("Choice questions must name the CORRECT option.")
    if correct_letter not in letters:
        raise DeckImportError(f"CORRECT must be one of {', '.join(letters)}.")

    return ChoiceSlide(
        id=slide_id,
        prompt=prompt,
        options=[
            ChoiceOption(
                id=letter.lower(),
                label=letter,
                content=options[letter],
                is_correct=letter == correct_letter,
            )
            for letter in letters
        ],
    )


def _deck_id_from_path(file_path: Path) -> str:
    return re.sub(r"[^a-z0-9]+", "-", file_path.stem.lower()).strip("-") or "deck"
