"""Deck-level accuracy, completion and mastery statistics."""
from datetime import datetime
from typing import Iterable, Optional

from deckdrill.config import settings
from deckdrill.deck_tree import DeckTree
from deckdrill.models import Attempt, Deck, DeckMetrics, Question
from deckdrill.scoring import calc_question_score
from deckdrill.store import QuestionStore


def get_mastery_label(mastery: float) -> str:
    if mastery >= 80:
        return "MASTERED"
    elif mastery >= 65:
        return "STRONG"
    elif mastery >= 50:
        return "LEARNING"
    return "NEEDS REVIEW"


def get_mastery_color(mastery: float) -> str:
    if mastery >= 80:
        return "green"
    elif mastery >= 65:
        return "yellow"
    elif mastery >= 50:
        return "dark_orange"
    return "red"


def calc_deck_metrics(
    questions: list[Question],
    attempts_by_question: dict[str, list[Attempt]],
    now: Optional[datetime] = None,
) -> DeckMetrics:
    """Aggregate question scores into deck metrics.

    average_score is in [0, 1]; accuracy, completion and mastery are
    percentages. Accuracy counts every historical attempt, completion counts
    at most 3 attempts per question.
    """
    if not questions:
        return DeckMetrics()

    window = settings.ATTEMPT_WINDOW
    total_score = 0.0
    total_attempts = 0
    correct_attempts = 0
    total_completion = 0.0
    mastered = 0

    for question in questions:
        attempts = attempts_by_question.get(question.id, [])
        score = calc_question_score(attempts, now=now)
        total_score += score
        total_attempts += len(attempts)
        correct_attempts += sum(1 for a in attempts if a.is_correct)
        total_completion += min(len(attempts), window) / window * 100
        if score == 1:
            mastered += 1

    count = len(questions)
    return DeckMetrics(
        average_score=total_score / count,
        accuracy=(correct_attempts / total_attempts * 100) if total_attempts else 0.0,
        completion=total_completion / count,
        mastery=mastered / count * 100,
    )


def get_deck_metrics(
    tree: DeckTree, store: QuestionStore, deck_id: str, now: Optional[datetime] = None,
) -> DeckMetrics:
    questions = tree.all_questions_of(deck_id)
    attempts = store.get_attempts(tree.user, [q.id for q in questions]) if questions else {}
    return calc_deck_metrics(questions, attempts, now=now)


def rank_decks_weakest_first(
    tree: DeckTree, store: QuestionStore, decks: Iterable[Deck], now: Optional[datetime] = None,
) -> list[tuple[Deck, DeckMetrics]]:
    """Pair each deck with its metrics, lowest average score first."""
    ranked = [(deck, get_deck_metrics(tree, store, deck.id, now=now)) for deck in decks]
    ranked.sort(key=lambda pair: pair[1].average_score)
    return ranked
