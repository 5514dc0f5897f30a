"""Plain-text deck import: file readers and the line-oriented deck grammar.

Format::

    Deck Title

    Question 1 text
    * Correct answer
    - Wrong answer
    Another wrong answer

    Question 2 text
    * Correct answer
    Wrong answer

The first non-blank line is the deck title. A question is followed by its
options; `*` marks the single correct option, `-` or no marker an incorrect
one. Blank lines separate questions.
"""
import json
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from deckdrill.config import settings
from deckdrill.deck_tree import DeckTree
from deckdrill.errors import ValidationError
from deckdrill.models import Deck, Question, QuestionOption

logger = logging.getLogger(__name__)

CORRECT_MARKER = "*"
INCORRECT_MARKER = "-"


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return path.read_text()
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text()
        return BeautifulSoup(html, "html.parser").get_text("\n")
    else:
        # Try reading as plain text
        return path.read_text()


@dataclass
class ParsedDeck:
    deck: Deck
    questions: list[Question]

    def to_dict(self) -> dict:
        return {
            "deck": self.deck.to_dict(),
            "subdecks": [],
            "questions": [q.to_dict() for q in self.questions],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def _new_id() -> str:
    return str(uuid.uuid4())


class _PendingQuestion:
    def __init__(self, text: str, line: int):
        self.text = text
        self.line = line
        self.options: list[tuple[str, bool]] = []

    @property
    def has_correct(self) -> bool:
        return any(is_correct for _, is_correct in self.options)


def _is_marked(line: str) -> bool:
    return line.startswith(CORRECT_MARKER) or line.startswith(INCORRECT_MARKER)


def _build_question(pending: _PendingQuestion, deck_id: str, new_id: Callable[[], str]) -> Question:
    name = pending.text
    if len(pending.options) < settings.MIN_OPTIONS_PER_QUESTION:
        raise ValidationError(
            f'Question "{name}" must have at least {settings.MIN_OPTIONS_PER_QUESTION} options', pending.line,
        )
    if len(pending.options) > settings.MAX_OPTIONS_PER_QUESTION:
        raise ValidationError(
            f'Question "{name}" has more than {settings.MAX_OPTIONS_PER_QUESTION} options', pending.line,
        )
    correct = [text for text, is_correct in pending.options if is_correct]
    if not correct:
        raise ValidationError(
            f'Question "{name}" must have one correct answer marked with {CORRECT_MARKER}', pending.line,
        )
    if len(correct) > 1:
        raise ValidationError(f'Question "{name}" can only have one correct answer', pending.line)
    if len(name) > settings.MAX_QUESTION_TEXT_LENGTH:
        raise ValidationError(
            f"Question text must be less than {settings.MAX_QUESTION_TEXT_LENGTH} characters", pending.line,
        )

    options = [QuestionOption(id=new_id(), text=text) for text, _ in pending.options]
    correct_index = next(i for i, (_, is_correct) in enumerate(pending.options) if is_correct)
    return Question(
        id=new_id(),
        text=name,
        options=options,
        correct_option_id=options[correct_index].id,
        deck_id=deck_id,
    )


def parse_text_to_deck(text: str, id_factory: Optional[Callable[[], str]] = None) -> ParsedDeck:
    """Parse the text deck format into a fresh root deck and its questions.

    Raises:
        ValidationError: on the first grammar or shape violation, with the
            1-based line number where one applies.
    """
    new_id = id_factory or _new_id
    lines = [line.strip() for line in text.splitlines()]

    title_index = next((i for i, line in enumerate(lines) if line), None)
    if title_index is None:
        raise ValidationError("Deck title is required")
    title = lines[title_index]
    if len(title) > settings.MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Title must be less than {settings.MAX_TITLE_LENGTH} characters", title_index + 1,
        )

    deck = Deck(id=new_id(), title=title, parent_id=None, is_subdeck=False)
    questions: list[Question] = []
    current: Optional[_PendingQuestion] = None

    for index in range(title_index + 1, len(lines)):
        line = lines[index]
        line_number = index + 1

        if not line:
            # A question with no options yet may still get them after the gap.
            if current is not None and current.options:
                questions.append(_build_question(current, deck.id, new_id))
                current = None
            continue

        if _is_marked(line):
            if current is None:
                raise ValidationError("Found an answer before any question", line_number)
            option_text = line[1:].strip()
            if not option_text:
                raise ValidationError("Empty option text", line_number)
            if len(option_text) > settings.MAX_OPTION_TEXT_LENGTH:
                raise ValidationError(
                    f"Option text must be less than {settings.MAX_OPTION_TEXT_LENGTH} characters", line_number,
                )
            current.options.append((option_text, line.startswith(CORRECT_MARKER)))
            continue

        if current is None:
            current = _PendingQuestion(line, line_number)
            continue

        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        if current.has_correct and next_line.startswith(CORRECT_MARKER):
            # No blank line between questions: this line opens the next one.
            questions.append(_build_question(current, deck.id, new_id))
            current = _PendingQuestion(line, line_number)
        else:
            if len(line) > settings.MAX_OPTION_TEXT_LENGTH:
                raise ValidationError(
                    f"Option text must be less than {settings.MAX_OPTION_TEXT_LENGTH} characters", line_number,
                )
            current.options.append((line, False))

    if current is not None:
        questions.append(_build_question(current, deck.id, new_id))

    if not questions:
        raise ValidationError("No valid questions found in the text")
    if len(questions) > settings.MAX_QUESTIONS_PER_DECK:
        raise ValidationError(f"Maximum {settings.MAX_QUESTIONS_PER_DECK} questions allowed")

    return ParsedDeck(deck=deck, questions=questions)


def preview_text_deck(text: str) -> dict:
    """Summarize what an import would create, without raising."""
    try:
        parsed = parse_text_to_deck(text)
    except ValidationError as e:
        return {"valid": False, "error": str(e), "line": e.line, "title": None, "questions": []}
    return {
        "valid": True,
        "error": None,
        "line": None,
        "title": parsed.deck.title,
        "questions": [
            {
                "text": q.text,
                "option_count": len(q.options),
                "correct": q.correct_option().text,
            }
            for q in parsed.questions
        ],
    }


def import_text_file(tree: DeckTree, file_path: str) -> ParsedDeck:
    """Parse a text deck file and store it as a new root deck."""
    parsed = parse_text_to_deck(read_file_content(file_path))
    tree.store.upsert_deck(tree.user, parsed.deck)
    for question in parsed.questions:
        tree.store.upsert_question(tree.user, question)
    logger.info(
        "imported %s as deck %s with %d questions",
        Path(file_path).name, parsed.deck.id, len(parsed.questions),
    )
    return parsed
