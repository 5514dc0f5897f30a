# tests/test_metrics.py
from conftest import NOW, make_attempt, make_question
from deckdrill.metrics import (
    calc_deck_metrics, get_deck_metrics, get_mastery_color, get_mastery_label, rank_decks_weakest_first,
)
from deckdrill.models import DeckMetrics


def test_empty_question_set_is_all_zero():
    assert calc_deck_metrics([], {}) == DeckMetrics(0, 0, 0, 0)


def test_metrics_with_no_attempts():
    questions = [make_question("q1", "d"), make_question("q2", "d")]
    m = calc_deck_metrics(questions, {}, now=NOW)
    assert m.average_score == 0
    assert m.accuracy == 0
    assert m.completion == 0
    assert m.mastery == 0


def test_metrics_mixed_history():
    questions = [make_question("q1", "d"), make_question("q2", "d")]
    attempts = {
        # Five attempts, last three correct today: mastered.
        "q1": [make_attempt("q1", True) for _ in range(3)] + [make_attempt("q1", False, days_ago=4) for _ in range(2)],
        # One wrong attempt today.
        "q2": [make_attempt("q2", False)],
    }
    m = calc_deck_metrics(questions, attempts, now=NOW)
    assert abs(m.average_score - (1.0 + 0.2) / 2) < 1e-9
    assert abs(m.accuracy - 3 / 6 * 100) < 1e-9
    assert abs(m.completion - (100 + 100 / 3) / 2) < 1e-9
    assert m.mastery == 50


def test_mastery_requires_no_decay():
    """All three correct but yesterday: score 0.99, not mastered."""
    questions = [make_question("q1", "d")]
    attempts = {"q1": [make_attempt("q1", True, days_ago=1) for _ in range(3)]}
    m = calc_deck_metrics(questions, attempts, now=NOW)
    assert m.mastery == 0
    assert abs(m.average_score - 0.99) < 1e-9


def test_get_deck_metrics_is_transitive(three_level, tree, store, user):
    store.record_attempt(user, "grandchild-q0", True)
    store.record_attempt(user, "grandchild-q0", False)
    m = get_deck_metrics(tree, store, "root", now=NOW)
    assert m.accuracy == 50
    assert abs(m.completion - (2 / 3 * 100) / 8) < 1e-9


def test_rank_decks_weakest_first(three_level, tree, store, user):
    for _ in range(3):
        store.record_attempt(user, "child_b-q0", True)
    store.record_attempt(user, "child_a-q0", False)
    ranked = rank_decks_weakest_first(tree, store, tree.subdecks_of("root"), now=NOW)
    assert [deck.id for deck, _ in ranked] == ["child_a", "child_b"]
    assert ranked[-1][1].mastery == 100


def test_mastery_label():
    assert get_mastery_label(85) == "MASTERED"
    assert get_mastery_label(70) == "STRONG"
    assert get_mastery_label(55) == "LEARNING"
    assert get_mastery_label(10) == "NEEDS REVIEW"


def test_mastery_color():
    assert get_mastery_color(90) == "green"
    assert get_mastery_color(0) == "red"
