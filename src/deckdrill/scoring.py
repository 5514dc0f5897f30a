"""Spaced repetition scoring over the most recent answer attempts."""
import logging
import random
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from deckdrill.config import settings
from deckdrill.models import Attempt, Question

logger = logging.getLogger(__name__)

# Scores are sums of thirds and tenths; rounding keeps 3 * 0.1 equal to 0.3.
_PRECISION = 10


def recent_attempts(attempts: Iterable[Attempt], window: int = settings.ATTEMPT_WINDOW) -> list[Attempt]:
    """Return up to `window` attempts, most recent first."""
    return sorted(attempts, key=lambda a: a.created_at, reverse=True)[:window]


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed between `moment` and `now`, never negative."""
    return max((now - moment) // timedelta(days=1), 0)


def calc_question_score(
    attempts: Iterable[Attempt],
    now: Optional[datetime] = None,
    apply_decay: bool = True,
) -> float:
    """Score a question in [0, 1] from its attempt history.

    Args:
        attempts: Attempt history in any order.
        now: Reference time for recency decay (defaults to the current time,
            in the timezone of the most recent attempt).
        apply_decay: Subtract 0.01 per day since the last attempt, capped
            at 0.30. Questions without attempts get the full cap.

    Returns:
        Each correct attempt among the last 3 adds 1/3, each missing slot
        adds 1/10, incorrect attempts add nothing.
    """
    window = settings.ATTEMPT_WINDOW
    last = recent_attempts(attempts, window)
    correct = sum(1 for a in last if a.is_correct)
    missing = window - len(last)
    score = round(correct / window + missing * settings.UNATTEMPTED_CREDIT, _PRECISION)

    if not apply_decay:
        return min(score, 1.0)

    if last:
        latest = last[0].created_at
        if now is None:
            now = datetime.now(latest.tzinfo)
        decay = min(days_since(latest, now) * settings.DECAY_PER_DAY, settings.MAX_DECAY)
    else:
        decay = settings.MAX_DECAY
    decay = round(decay, _PRECISION)

    return min(max(round(score - decay, _PRECISION), 0.0), 1.0)


def group_attempts(attempts: Iterable[Attempt]) -> dict[str, list[Attempt]]:
    """Group attempts by question id, most recent first within each group."""
    grouped = defaultdict(list)
    for attempt in attempts:
        grouped[attempt.question_id].append(attempt)
    return {
        qid: sorted(items, key=lambda a: a.created_at, reverse=True)
        for qid, items in grouped.items()
    }


def sort_questions_by_score(
    questions: Iterable[Question],
    attempts_by_question: dict[str, list[Attempt]],
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> list[Question]:
    """Order questions weakest first; equal scores land in random order."""
    rng = rng or random.Random()
    keyed = []
    for question in questions:
        score = calc_question_score(attempts_by_question.get(question.id, []), now=now)
        logger.debug("question %s scored %.3f", question.id, score)
        keyed.append((score, rng.random(), question))
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [question for _, _, question in keyed]
