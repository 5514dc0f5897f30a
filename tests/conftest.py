import itertools
from datetime import datetime, timedelta, timezone

import pytest

from deckdrill.deck_tree import DeckTree
from deckdrill.models import Attempt, Deck, Question, QuestionOption, UserContext
from deckdrill.outbox import WriteQueue
from deckdrill.store import MemoryStore

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


def make_question(qid, deck_id, text=None, n_options=3):
    options = [QuestionOption(id=f"{qid}-o{i}", text=f"Option {i}") for i in range(n_options)]
    return Question(
        id=qid, text=text or f"Question {qid}", options=options,
        correct_option_id=options[0].id, deck_id=deck_id,
    )


def make_attempt(question_id, is_correct, days_ago=0, user_id="u1"):
    return Attempt(
        id=f"a{next(_ids)}", user_id=user_id, question_id=question_id,
        is_correct=is_correct, created_at=NOW - timedelta(days=days_ago),
    )


def wrong_option(question):
    return next(o.id for o in question.options if o.id != question.correct_option_id)


@pytest.fixture
def user():
    return UserContext(user_id="u1")


@pytest.fixture
def store():
    return MemoryStore(clock=lambda: NOW)


@pytest.fixture
def tree(store, user):
    return DeckTree(store, user)


@pytest.fixture
def writes(store, user):
    return WriteQueue(store, user)


@pytest.fixture
def three_level(store, user):
    """root -> (child_a -> grandchild, child_b), questions at every level."""
    decks = [
        Deck(id="root", title="Root", available_for_practice_test=True),
        Deck(id="child_a", title="Child A", parent_id="root", is_subdeck=True),
        Deck(id="child_b", title="Child B", parent_id="root", is_subdeck=True),
        Deck(id="grandchild", title="Grandchild", parent_id="child_a", is_subdeck=True),
        Deck(id="other", title="Other root"),
    ]
    for deck in decks:
        store.upsert_deck(user, deck)
    layout = {"root": 2, "child_a": 2, "child_b": 1, "grandchild": 3, "other": 1}
    for deck_id, count in layout.items():
        for i in range(count):
            store.upsert_question(user, make_question(f"{deck_id}-q{i}", deck_id))
    return store


@pytest.fixture
def flat_deck(store, user):
    """A single deck with five questions q0..q4."""
    store.upsert_deck(user, Deck(id="deck", title="Flat deck", available_for_practice_test=True))
    for i in range(5):
        store.upsert_question(user, make_question(f"q{i}", "deck"))
    return store
