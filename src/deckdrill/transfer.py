"""Full-deck export and import in the `{deck, subdecks, questions}` format."""
import json
import logging
import re
import uuid
from pathlib import Path
from typing import Callable, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from deckdrill.config import settings
from deckdrill.deck_tree import DeckTree
from deckdrill.errors import ValidationError
from deckdrill.models import Deck, Question, QuestionOption

logger = logging.getLogger(__name__)


# --- Import schema ---
class OptionIn(BaseModel):
    id: str = Field(min_length=1)
    text: str = Field(min_length=1, max_length=settings.MAX_OPTION_TEXT_LENGTH)


class QuestionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    text: str = Field(min_length=1, max_length=settings.MAX_QUESTION_TEXT_LENGTH)
    options: list[OptionIn] = Field(
        min_length=settings.MIN_OPTIONS_PER_QUESTION, max_length=settings.MAX_OPTIONS_PER_QUESTION,
    )
    correct_option_id: str = Field(alias="correctOptionId", min_length=1)
    deck_id: Optional[str] = Field(default=None, alias="deckId")

    @model_validator(mode="after")
    def correct_option_exists(self):
        option_ids = [o.id for o in self.options]
        if len(set(option_ids)) != len(option_ids):
            raise ValueError(f'Question "{self.text[:50]}" has duplicate option ids')
        if self.correct_option_id not in option_ids:
            raise ValueError(f'Question "{self.text[:50]}" has invalid correctOptionId')
        return self


class DeckIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=settings.MAX_TITLE_LENGTH)
    description: Optional[str] = Field(default=None, max_length=settings.MAX_DESCRIPTION_LENGTH)
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    is_subdeck: Optional[bool] = Field(default=None, alias="isSubdeck")
    available_for_practice_test: bool = Field(default=False, alias="availableForPracticeTest")
    is_past_paper: bool = Field(default=False, alias="isPastPaper")


class DeckImport(BaseModel):
    deck: DeckIn
    subdecks: list[DeckIn] = Field(default_factory=list, max_length=settings.MAX_SUBDECKS)
    questions: list[QuestionIn] = Field(max_length=settings.MAX_QUESTIONS_PER_DECK)

    @field_validator("subdecks", mode="before")
    @classmethod
    def null_subdecks(cls, value):
        return [] if value is None else value

    @model_validator(mode="after")
    def subdecks_reach_root(self):
        parents = {s.id: s.parent_id for s in self.subdecks if s.id}
        for subdeck in self.subdecks:
            seen = set()
            parent_id = subdeck.parent_id
            while parent_id is not None and parent_id != self.deck.id:
                if parent_id in seen or parent_id not in parents:
                    raise ValueError(f'Subdeck "{subdeck.title}" is not attached to the imported deck')
                seen.add(parent_id)
                parent_id = parents[parent_id]
        return self


def _format_error(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    path = ".".join(str(part) for part in first["loc"])
    message = first["msg"].removeprefix("Value error, ")
    return f"Validation error{f' at {path}' if path else ''}: {message}"


def validate_deck_import(data: Union[str, dict]) -> DeckImport:
    """Validate import data given as a JSON string or an already-loaded dict."""
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            raise ValidationError("Invalid JSON format. Please check your file.")
    if not isinstance(data, dict):
        raise ValidationError("Invalid deck data format")
    try:
        return DeckImport.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(_format_error(e)) from e


def read_deck_file(file_path: str) -> dict:
    path = Path(file_path)
    text = path.read_text()
    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML format: {e}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            raise ValidationError("Invalid JSON format. Please check your file.")
    if not isinstance(data, dict):
        raise ValidationError("Invalid deck data format")
    return data


# --- Id remapping ---
def remap_deck_import(
    payload: DeckImport, id_factory: Optional[Callable[[], str]] = None,
) -> tuple[Deck, list[Deck], list[Question]]:
    """Give every deck, question and option a fresh id.

    parentId, deckId and correctOptionId are rewritten through the same
    old-to-new mapping. The imported deck always becomes a root deck, and a
    question whose deck is not part of the import lands in it.
    """
    new_id = id_factory or (lambda: str(uuid.uuid4()))
    id_map: dict[str, str] = {}

    root = Deck(
        id=new_id(),
        title=payload.deck.title,
        description=payload.deck.description,
        parent_id=None,
        is_subdeck=False,
        available_for_practice_test=payload.deck.available_for_practice_test,
        is_past_paper=payload.deck.is_past_paper,
    )
    if payload.deck.id:
        id_map[payload.deck.id] = root.id

    # Map every subdeck first so parents listed after children still resolve.
    subdeck_ids = [new_id() for _ in payload.subdecks]
    for sub, sub_id in zip(payload.subdecks, subdeck_ids):
        if sub.id:
            id_map[sub.id] = sub_id

    subdecks = []
    for sub, sub_id in zip(payload.subdecks, subdeck_ids):
        parent_id = id_map.get(sub.parent_id, root.id) if sub.parent_id else root.id
        subdecks.append(Deck(
            id=sub_id,
            title=sub.title,
            description=sub.description,
            parent_id=parent_id,
            is_subdeck=True,
            available_for_practice_test=sub.available_for_practice_test,
            is_past_paper=sub.is_past_paper,
        ))

    questions = []
    for q in payload.questions:
        option_map = {}
        options = []
        for option in q.options:
            option_map[option.id] = new_id()
            options.append(QuestionOption(id=option_map[option.id], text=option.text))
        questions.append(Question(
            id=new_id(),
            text=q.text,
            options=options,
            correct_option_id=option_map[q.correct_option_id],
            deck_id=id_map.get(q.deck_id, root.id) if q.deck_id else root.id,
        ))

    return root, subdecks, questions


def import_deck(
    tree: DeckTree, data: Union[str, dict], id_factory: Optional[Callable[[], str]] = None,
) -> tuple[Deck, list[Deck], list[Question]]:
    """Validate, remap and store a deck. Nothing is written if validation fails."""
    payload = validate_deck_import(data)
    root, subdecks, questions = remap_deck_import(payload, id_factory)
    for deck in [root, *subdecks]:
        tree.store.upsert_deck(tree.user, deck)
    for question in questions:
        tree.store.upsert_question(tree.user, question)
    logger.info(
        "imported deck %s (%s) with %d subdecks and %d questions",
        root.id, root.title, len(subdecks), len(questions),
    )
    return root, subdecks, questions


# --- Export ---
def export_deck(tree: DeckTree, deck_id: str) -> dict:
    deck = tree.get_deck(deck_id)
    return {
        "deck": deck.to_dict(),
        "subdecks": [d.to_dict() for d in tree.all_subdecks_of(deck_id)],
        "questions": [q.to_dict() for q in tree.all_questions_of(deck_id)],
    }


def export_deck_json(tree: DeckTree, deck_id: str) -> str:
    return json.dumps(export_deck(tree, deck_id), indent=2)


def export_file_name(deck: Deck) -> str:
    return re.sub(r"\s+", "_", deck.title) + "_deck.json"
