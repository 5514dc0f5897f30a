# tests/test_deck_tree.py
import random

import pytest

from conftest import make_question
from deckdrill.deck_tree import DeckTree
from deckdrill.errors import NotFoundError, PolicyError
from deckdrill.models import Deck


def ids(items):
    return [i.id for i in items]


def test_subdecks_of_direct_children_only(three_level, tree):
    assert set(ids(tree.subdecks_of("root"))) == {"child_a", "child_b"}
    assert ids(tree.subdecks_of("child_a")) == ["grandchild"]
    assert set(ids(tree.subdecks_of(None))) == {"root", "other"}


def test_questions_of_is_not_transitive(three_level, tree):
    assert ids(tree.questions_of("root")) == ["root-q0", "root-q1"]


def test_all_questions_of_three_levels(three_level, tree):
    all_q = ids(tree.all_questions_of("root"))
    assert all_q[:2] == ["root-q0", "root-q1"]
    assert sorted(all_q) == sorted(
        ["root-q0", "root-q1", "child_a-q0", "child_a-q1", "child_b-q0",
         "grandchild-q0", "grandchild-q1", "grandchild-q2"]
    )
    assert "other-q0" not in all_q


def test_all_questions_is_union_of_direct_and_subdecks(three_level, tree):
    for deck_id in ("root", "child_a", "child_b", "grandchild"):
        direct = ids(tree.questions_of(deck_id))
        union = list(direct)
        for child in tree.subdecks_of(deck_id):
            union.extend(ids(tree.all_questions_of(child.id)))
        assert ids(tree.all_questions_of(deck_id)) == union
        assert set(direct) <= set(union)


def test_total_question_count(three_level, tree):
    assert tree.total_question_count("root") == 8
    assert tree.total_question_count("child_a") == 5
    assert tree.total_question_count("other") == 1


def test_get_deck_missing_raises(tree):
    with pytest.raises(NotFoundError):
        tree.get_deck("nope")


def test_all_subdecks_of(three_level, tree):
    assert ids(tree.all_subdecks_of("root"))[0] in ("child_a", "child_b")
    assert set(ids(tree.all_subdecks_of("root"))) == {"child_a", "child_b", "grandchild"}


def test_breadcrumb_root_first(three_level, tree):
    assert ids(tree.breadcrumb("grandchild")) == ["root", "child_a", "grandchild"]
    assert ids(tree.breadcrumb("root")) == ["root"]


def test_would_create_cycle(three_level, tree):
    assert tree.would_create_cycle("root", "root") is True
    assert tree.would_create_cycle("root", "grandchild") is True
    assert tree.would_create_cycle("child_a", "grandchild") is True
    assert tree.would_create_cycle("grandchild", "child_b") is False
    assert tree.would_create_cycle("other", "grandchild") is False


def test_dangling_parent_does_not_loop(store, user):
    store.upsert_deck(user, Deck(id="orphan", title="Orphan", parent_id="missing", is_subdeck=True))
    tree = DeckTree(store, user)
    assert tree.ancestors_of("orphan") == []
    assert tree.would_create_cycle("x", "orphan") is False


def test_corrupted_cycle_terminates(store, user):
    store.upsert_deck(user, Deck(id="a", title="A", parent_id="b", is_subdeck=True))
    store.upsert_deck(user, Deck(id="b", title="B", parent_id="a", is_subdeck=True))
    store.upsert_question(user, make_question("qa", "a"))
    store.upsert_question(user, make_question("qb", "b"))
    tree = DeckTree(store, user)
    assert ids(tree.all_questions_of("a")) == ["qa", "qb"]
    assert ids(tree.ancestors_of("a")) == ["b"]
    assert tree.would_create_cycle("a", "b") is True


def _random_forest(store, user, rng, size):
    deck_ids = [f"d{i}" for i in range(size)]
    parents = {}
    for i, deck_id in enumerate(deck_ids):
        parent = rng.choice([None] + deck_ids[:i]) if i else None
        parents[deck_id] = parent
        store.upsert_deck(user, Deck(id=deck_id, title=deck_id, parent_id=parent, is_subdeck=parent is not None))
    return parents


def _descendants(parents, deck_id):
    found = {deck_id}
    changed = True
    while changed:
        changed = False
        for child, parent in parents.items():
            if parent in found and child not in found:
                found.add(child)
                changed = True
    return found


@pytest.mark.parametrize("seed", range(10))
def test_would_create_cycle_matches_descendants(seed):
    from deckdrill.models import UserContext
    from deckdrill.store import MemoryStore

    rng = random.Random(seed)
    store, user = MemoryStore(), UserContext(user_id="p")
    parents = _random_forest(store, user, rng, 12)
    tree = DeckTree(store, user)
    for a in parents:
        below = _descendants(parents, a)
        for b in parents:
            assert tree.would_create_cycle(a, b) is (b in below)


def test_reparent_moves_deck(three_level, tree):
    moved = tree.reparent("child_b", "grandchild")
    assert moved.parent_id == "grandchild"
    assert moved.is_subdeck is True
    assert tree.total_question_count("child_a") == 6


def test_reparent_to_root(three_level, tree):
    moved = tree.reparent("child_a", None)
    assert moved.parent_id is None
    assert moved.is_subdeck is False
    assert "child_a" in ids(tree.root_decks())


def test_reparent_cycle_rejected_without_write(three_level, tree, user):
    before = tree.get_deck("root")
    with pytest.raises(PolicyError):
        tree.reparent("root", "grandchild")
    assert tree.get_deck("root") == before


def test_reparent_guard_runs_before_store_write(three_level, user):
    from unittest.mock import patch

    tree = DeckTree(three_level, user)
    with patch.object(three_level, "upsert_deck") as upsert:
        with pytest.raises(PolicyError):
            tree.reparent("child_a", "grandchild")
        upsert.assert_not_called()


def test_delete_deck_cascades(three_level, tree):
    tree.delete_deck("child_a")
    assert tree.find_deck("grandchild") is None
    assert tree.questions_of("grandchild") == []
    assert tree.total_question_count("root") == 3
