"""Study, practice-test and question-bank session engine."""
import logging
import random
import threading
import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from deckdrill.config import settings
from deckdrill.deck_tree import DeckTree
from deckdrill.errors import PolicyError, ValidationError
from deckdrill.models import (
    Question, SessionKind, SessionResult, SessionState, StudySession,
)
from deckdrill.outbox import WriteQueue
from deckdrill.scoring import sort_questions_by_score
from deckdrill.store import QuestionStore

logger = logging.getLogger(__name__)

Draw = Callable[[set], list[Question]]


class CountdownTimer:
    """Monotonic countdown with a cancellation token."""

    def __init__(self, total_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.total_seconds = total_seconds
        self.clock = clock
        self._started_at: Optional[float] = None
        self._cancelled = threading.Event()
        self._thread_timer: Optional[threading.Timer] = None

    def start(self) -> None:
        self._started_at = self.clock()
        self._cancelled.clear()

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float:
        if self._started_at is None:
            return float(self.total_seconds)
        return max(self.total_seconds - (self.clock() - self._started_at), 0.0)

    @property
    def expired(self) -> bool:
        return self.started and not self.cancelled and self.remaining() <= 0

    def cancel(self) -> None:
        self._cancelled.set()
        if self._thread_timer is not None:
            self._thread_timer.cancel()
            self._thread_timer = None

    def schedule(self, callback: Callable[[], object]) -> None:
        """Call `callback` from a background thread once time runs out."""
        if not self.started:
            self.start()
        self._thread_timer = threading.Timer(self.remaining(), self._fire, args=(callback,))
        self._thread_timer.daemon = True
        self._thread_timer.start()

    def _fire(self, callback: Callable[[], object]) -> None:
        if not self.cancelled:
            callback()

    def format_remaining(self) -> str:
        seconds = int(self.remaining())
        return f"{seconds // 60}:{seconds % 60:02d}"


class SessionEngine:
    """State machine for one study run: not_started -> in_progress -> finished.

    The question list is frozen when the session is drawn. Each answered
    question is scored at most once per run, producing one Attempt write;
    study and bank-review runs score a question when advancing past it,
    every run scores whatever is left when it finishes.
    """

    def __init__(
        self,
        kind: SessionKind,
        deck_id: Optional[str],
        questions: list[Question],
        writes: WriteQueue,
        bank_ids: Iterable[str],
        draw: Draw,
        time_limit: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.kind = kind
        self.writes = writes
        self.bank = set(bank_ids)
        self.state = SessionState.NOT_STARTED
        self.session = StudySession(deck_id=deck_id, questions=list(questions))
        self.time_limit = time_limit
        self.clock = clock
        self.timer = CountdownTimer(time_limit, clock) if time_limit else None
        self._draw = draw
        self._scored: set[str] = set()
        self._response_times: dict[str, Optional[int]] = {}
        self._result: Optional[SessionResult] = None
        self._lock = threading.RLock()

    # --- Queries ---

    @property
    def questions(self) -> list[Question]:
        return self.session.questions

    @property
    def current_question(self) -> Optional[Question]:
        if self.state != SessionState.IN_PROGRESS:
            return None
        if self.session.current_index >= len(self.session.questions):
            return None
        return self.session.questions[self.session.current_index]

    @property
    def reveals_answers(self) -> bool:
        return self.kind != SessionKind.PRACTICE_TEST

    def stats(self) -> dict:
        answered = self.session.answered_questions
        correct = sum(1 for q in self.session.questions if q.id in answered and q.is_correct(answered[q.id]))
        return {"total": len(answered), "correct": correct, "incorrect": len(answered) - correct}

    def result(self) -> SessionResult:
        if self._result is None:
            raise PolicyError("Session has not finished yet")
        return self._result

    # --- Transitions ---

    def start(self, watch_timer: bool = False) -> None:
        with self._lock:
            if self.state != SessionState.NOT_STARTED:
                raise PolicyError(f"Cannot start a session that is {self.state.value}")
            self.state = SessionState.IN_PROGRESS
            if self.timer is not None:
                if watch_timer:
                    self.timer.schedule(self.expire)
                else:
                    self.timer.start()
            logger.info(
                "started %s session on deck %s with %d questions",
                self.kind.value, self.session.deck_id, len(self.session.questions),
            )

    def answer(self, question_id: str, option_id: str, response_time_ms: Optional[int] = None) -> Optional[bool]:
        """Record a selection. Returns correctness, or None when hidden."""
        with self._lock:
            self.check_time()
            self._require_in_progress()
            question = self._find(question_id)
            if not question.has_option(option_id):
                raise ValidationError(f"Option {option_id} does not belong to question {question_id}")
            self.session.answered_questions[question_id] = option_id
            self._response_times[question_id] = response_time_ms
            if not self.reveals_answers:
                return None
            return question.is_correct(option_id)

    def advance(self) -> SessionState:
        with self._lock:
            if self.check_time():
                return self.state
            self._require_in_progress()
            current = self.current_question
            if current is not None and self.reveals_answers:
                self._score(current)
            self.session.current_index += 1
            if self.session.current_index >= len(self.session.questions):
                self._finish(timed_out=False)
            return self.state

    def finish(self) -> bool:
        """End the run now. Returns False if it had already finished."""
        with self._lock:
            if self.state == SessionState.NOT_STARTED:
                raise PolicyError("Cannot finish a session that has not started")
            return self._finish(timed_out=False)

    def expire(self) -> bool:
        """Time ran out. Safe to call any number of times."""
        with self._lock:
            if self.state != SessionState.IN_PROGRESS:
                return False
            logger.info("%s session on deck %s ran out of time", self.kind.value, self.session.deck_id)
            return self._finish(timed_out=True)

    def check_time(self) -> bool:
        """Finish the run if its timer has expired. Returns True if it did."""
        if self.timer is not None and self.timer.expired:
            return self.expire()
        return False

    def restart(self) -> None:
        """Back to not_started with a freshly drawn question set."""
        with self._lock:
            questions = self._draw(self.bank)
            if self.timer is not None:
                self.timer.cancel()
            self.session = StudySession(deck_id=self.session.deck_id, questions=list(questions))
            self.timer = CountdownTimer(self.time_limit, self.clock) if self.time_limit else None
            self._scored = set()
            self._response_times = {}
            self._result = None
            self.state = SessionState.NOT_STARTED
            logger.info("restarted %s session on deck %s", self.kind.value, self.session.deck_id)

    # --- Internals ---

    def _require_in_progress(self) -> None:
        if self.state != SessionState.IN_PROGRESS:
            raise PolicyError(f"Session is {self.state.value}, not in progress")

    def _find(self, question_id: str) -> Question:
        for question in self.session.questions:
            if question.id == question_id:
                return question
        raise ValidationError(f"Question {question_id} is not part of this session")

    def _score(self, question: Question) -> None:
        selected = self.session.answered_questions.get(question.id)
        if selected is None or question.id in self._scored:
            return
        self._scored.add(question.id)
        is_correct = question.is_correct(selected)
        logger.debug("scored question %s: %s", question.id, "correct" if is_correct else "incorrect")
        self.writes.record_attempt(question.id, is_correct, self._response_times.get(question.id))
        if not is_correct:
            if all(q.id != question.id for q in self.session.incorrect_questions):
                self.session.incorrect_questions.append(question)
            if question.id not in self.bank:
                self.bank.add(question.id)
                self.writes.add_to_bank(question.id)
        elif self.kind == SessionKind.BANK_REVIEW and question.id in self.bank:
            self.bank.discard(question.id)
            self.writes.remove_from_bank(question.id)

    def _finish(self, timed_out: bool) -> bool:
        if self.state == SessionState.FINISHED:
            return False
        for question in self.session.questions:
            self._score(question)
        if self.timer is not None:
            self.timer.cancel()
        answered = self.session.answered_questions
        result = SessionResult(total=len(self.session.questions), timed_out=timed_out)
        for question in self.session.questions:
            if question.id not in answered:
                result.unanswered_ids.append(question.id)
            elif question.is_correct(answered[question.id]):
                result.correct_ids.append(question.id)
            else:
                result.incorrect_ids.append(question.id)
        self._result = result
        self.state = SessionState.FINISHED
        logger.info(
            "finished %s session on deck %s: %d correct, %d incorrect, %d unanswered",
            self.kind.value, self.session.deck_id,
            len(result.correct_ids), len(result.incorrect_ids), len(result.unanswered_ids),
        )
        return True


def create_study_session(
    tree: DeckTree,
    store: QuestionStore,
    writes: WriteQueue,
    deck_id: str,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> SessionEngine:
    """Weakest-first study run over every question under a deck."""
    deck = tree.get_deck(deck_id)
    rng = rng or random.Random()

    def draw(bank: set) -> list[Question]:
        questions = tree.all_questions_of(deck_id)
        if not questions:
            raise PolicyError(f"Deck '{deck.title}' has no questions to study")
        attempts = store.get_attempts(tree.user, [q.id for q in questions])
        return sort_questions_by_score(questions, attempts, now=now, rng=rng)

    bank = set(store.get_bank(tree.user))
    return SessionEngine(SessionKind.STUDY, deck_id, draw(bank), writes, bank, draw)


def create_practice_test(
    tree: DeckTree,
    store: QuestionStore,
    writes: WriteQueue,
    deck_id: str,
    count: int,
    timed: bool = False,
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.monotonic,
) -> SessionEngine:
    """Fixed-size test; past papers keep stored order, other decks are sampled."""
    deck = tree.get_deck(deck_id)
    if not deck.offers_practice_test:
        raise PolicyError(f"Deck '{deck.title}' is not available for practice tests")
    if count < 1:
        raise PolicyError("A practice test needs at least one question")
    rng = rng or random.Random()

    def draw(bank: set) -> list[Question]:
        available = tree.all_questions_of(deck_id)
        if not available:
            raise PolicyError(f"Deck '{deck.title}' has no questions")
        if count > len(available):
            raise PolicyError(
                f"Deck '{deck.title}' has {len(available)} questions, not enough for a {count}-question test"
            )
        if deck.is_past_paper:
            return available[:count]
        return rng.sample(available, count)

    questions = draw(set())
    time_limit = settings.SECONDS_PER_QUESTION * count if timed else None
    return SessionEngine(
        SessionKind.PRACTICE_TEST, deck_id, questions, writes, store.get_bank(tree.user), draw,
        time_limit=time_limit, clock=clock,
    )


def create_bank_review(tree: DeckTree, store: QuestionStore, writes: WriteQueue) -> SessionEngine:
    """Practice the questions in the user's QuestionBank, in bank order."""
    order = store.get_bank(tree.user)

    def draw(bank: set) -> list[Question]:
        questions = []
        for question_id in order:
            if question_id not in bank:
                continue
            question = tree.store.get_question(tree.user, question_id)
            if question is not None:
                questions.append(question)
        if not questions:
            raise PolicyError("Your question bank is empty")
        return questions

    bank = set(order)
    return SessionEngine(SessionKind.BANK_REVIEW, None, draw(bank), writes, bank, draw)
