"""Data classes for the deck/question domain model."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass
class UserContext:
    user_id: str


@dataclass
class Deck:
    id: str
    title: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    is_subdeck: bool = False
    available_for_practice_test: bool = False
    is_past_paper: bool = False

    @property
    def offers_practice_test(self) -> bool:
        return self.available_for_practice_test or self.is_past_paper

    def to_dict(self) -> dict:
        data = {"id": self.id, "title": self.title}
        if self.description is not None:
            data["description"] = self.description
        data.update({
            "parentId": self.parent_id,
            "isSubdeck": self.is_subdeck,
            "availableForPracticeTest": self.available_for_practice_test,
            "isPastPaper": self.is_past_paper,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Deck":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description"),
            parent_id=data.get("parentId"),
            is_subdeck=bool(data.get("isSubdeck", data.get("parentId") is not None)),
            available_for_practice_test=bool(data.get("availableForPracticeTest", False)),
            is_past_paper=bool(data.get("isPastPaper", False)),
        )


@dataclass
class QuestionOption:
    id: str
    text: str


@dataclass
class Question:
    id: str
    text: str
    options: list[QuestionOption]
    correct_option_id: str
    deck_id: str

    def option_ids(self) -> list[str]:
        return [o.id for o in self.options]

    def has_option(self, option_id: str) -> bool:
        return option_id in self.option_ids()

    def is_correct(self, option_id: str) -> bool:
        return option_id == self.correct_option_id

    def correct_option(self) -> QuestionOption:
        return next(o for o in self.options if o.id == self.correct_option_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "options": [{"id": o.id, "text": o.text} for o in self.options],
            "correctOptionId": self.correct_option_id,
            "deckId": self.deck_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            id=data["id"],
            text=data["text"],
            options=[QuestionOption(id=o["id"], text=o["text"]) for o in data["options"]],
            correct_option_id=data["correctOptionId"],
            deck_id=data["deckId"],
        )


@dataclass
class Attempt:
    id: str
    user_id: str
    question_id: str
    is_correct: bool
    created_at: datetime
    response_time_ms: Optional[int] = None


@dataclass
class DeckMetrics:
    average_score: float = 0.0
    accuracy: float = 0.0
    completion: float = 0.0
    mastery: float = 0.0


class SessionKind(str, Enum):
    STUDY = "study"
    PRACTICE_TEST = "practice_test"
    BANK_REVIEW = "bank_review"


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass
class StudySession:
    deck_id: Optional[str]
    questions: list[Question]
    current_index: int = 0
    answered_questions: dict[str, str] = field(default_factory=dict)  # question id -> option id
    incorrect_questions: list[Question] = field(default_factory=list)


@dataclass
class SessionResult:
    total: int
    correct_ids: list[str] = field(default_factory=list)
    incorrect_ids: list[str] = field(default_factory=list)
    unanswered_ids: list[str] = field(default_factory=list)
    timed_out: bool = False

    @property
    def score_percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(len(self.correct_ids) / self.total * 100)
