"""Store interfaces consumed by the engine, and an in-memory implementation."""
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from deckdrill.errors import NotFoundError
from deckdrill.models import Attempt, Deck, Question, UserContext
from deckdrill.scoring import group_attempts


class QuestionStore(ABC):
    """Attempt log and QuestionBank membership for a user."""

    @abstractmethod
    def get_attempts(self, user: UserContext, question_ids: Iterable[str]) -> dict[str, list[Attempt]]:
        """Attempts keyed by question id, most recent first."""

    @abstractmethod
    def record_attempt(
        self, user: UserContext, question_id: str, is_correct: bool,
        response_time_ms: Optional[int] = None,
    ) -> None:
        pass

    @abstractmethod
    def add_to_bank(self, user: UserContext, question_id: str) -> None:
        pass

    @abstractmethod
    def remove_from_bank(self, user: UserContext, question_id: str) -> None:
        pass

    @abstractmethod
    def get_bank(self, user: UserContext) -> list[str]:
        """Question ids currently in the user's QuestionBank."""


class DeckStore(ABC):
    """Decks and questions owned by a user."""

    @abstractmethod
    def get_deck(self, user: UserContext, deck_id: str) -> Optional[Deck]:
        pass

    @abstractmethod
    def get_children(self, user: UserContext, parent_id: Optional[str]) -> list[Deck]:
        pass

    @abstractmethod
    def get_questions(self, user: UserContext, deck_id: str) -> list[Question]:
        pass

    @abstractmethod
    def get_question(self, user: UserContext, question_id: str) -> Optional[Question]:
        pass

    @abstractmethod
    def upsert_deck(self, user: UserContext, deck: Deck) -> None:
        pass

    @abstractmethod
    def upsert_question(self, user: UserContext, question: Question) -> None:
        pass

    @abstractmethod
    def delete_deck(self, user: UserContext, deck_id: str) -> None:
        """Delete a deck, its descendant decks and all their questions."""


class MemoryStore(QuestionStore, DeckStore):
    """Dictionary-backed store. Insertion order is the natural stored order."""

    def __init__(self, clock: Callable[[], datetime] = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._decks: dict[str, dict[str, Deck]] = {}
        self._questions: dict[str, dict[str, Question]] = {}
        self._attempts: dict[str, list[Attempt]] = {}
        self._bank: dict[str, list[str]] = {}

    # --- DeckStore ---

    def get_deck(self, user, deck_id):
        return self._decks.get(user.user_id, {}).get(deck_id)

    def get_children(self, user, parent_id):
        return [d for d in self._decks.get(user.user_id, {}).values() if d.parent_id == parent_id]

    def get_questions(self, user, deck_id):
        return [q for q in self._questions.get(user.user_id, {}).values() if q.deck_id == deck_id]

    def get_question(self, user, question_id):
        return self._questions.get(user.user_id, {}).get(question_id)

    def upsert_deck(self, user, deck):
        self._decks.setdefault(user.user_id, {})[deck.id] = deck

    def upsert_question(self, user, question):
        if self.get_deck(user, question.deck_id) is None:
            raise NotFoundError(f"Deck {question.deck_id} not found")
        self._questions.setdefault(user.user_id, {})[question.id] = question

    def delete_deck(self, user, deck_id):
        decks = self._decks.get(user.user_id, {})
        doomed = set()
        pending = [deck_id]
        while pending:
            current = pending.pop()
            if current in doomed or current not in decks:
                continue
            doomed.add(current)
            pending.extend(d.id for d in decks.values() if d.parent_id == current)
        for did in doomed:
            del decks[did]
        questions = self._questions.get(user.user_id, {})
        for qid in [q.id for q in questions.values() if q.deck_id in doomed]:
            del questions[qid]

    # --- QuestionStore ---

    def get_attempts(self, user, question_ids):
        wanted = set(question_ids)
        return group_attempts(a for a in self._attempts.get(user.user_id, []) if a.question_id in wanted)

    def record_attempt(self, user, question_id, is_correct, response_time_ms=None):
        self._attempts.setdefault(user.user_id, []).append(Attempt(
            id=str(uuid.uuid4()),
            user_id=user.user_id,
            question_id=question_id,
            is_correct=is_correct,
            created_at=self.clock(),
            response_time_ms=response_time_ms,
        ))

    def add_to_bank(self, user, question_id):
        bank = self._bank.setdefault(user.user_id, [])
        if question_id not in bank:
            bank.append(question_id)

    def remove_from_bank(self, user, question_id):
        bank = self._bank.get(user.user_id, [])
        if question_id in bank:
            bank.remove(question_id)

    def get_bank(self, user):
        return list(self._bank.get(user.user_id, []))

    def all_attempts(self, user: UserContext) -> list[Attempt]:
        return list(self._attempts.get(user.user_id, []))
