"""Tests for data model classes."""
from deckdrill.models import Deck, DeckMetrics, Question, QuestionOption, SessionKind, SessionResult, StudySession


def test_deck_defaults():
    d = Deck(id="d1", title="Compute")
    assert d.parent_id is None
    assert d.is_subdeck is False
    assert d.available_for_practice_test is False
    assert d.is_past_paper is False
    assert d.description is None


def test_deck_to_dict_uses_camel_case():
    d = Deck(id="d2", title="GKE", description="Kubernetes", parent_id="d1", is_subdeck=True)
    data = d.to_dict()
    assert data["parentId"] == "d1"
    assert data["isSubdeck"] is True
    assert data["description"] == "Kubernetes"
    assert Deck.from_dict(data) == d


def test_deck_from_dict_infers_subdeck():
    d = Deck.from_dict({"id": "d3", "title": "Nested", "parentId": "d1"})
    assert d.is_subdeck is True


def test_question_helpers():
    q = Question(
        id="q1", text="Pick", deck_id="d1", correct_option_id="b",
        options=[QuestionOption(id="a", text="A"), QuestionOption(id="b", text="B")],
    )
    assert q.option_ids() == ["a", "b"]
    assert q.has_option("a")
    assert not q.has_option("z")
    assert q.is_correct("b")
    assert q.correct_option().text == "B"
    assert Question.from_dict(q.to_dict()) == q


def test_metrics_defaults():
    m = DeckMetrics()
    assert m.average_score == 0.0
    assert m.mastery == 0.0


def test_study_session_defaults():
    s = StudySession(deck_id="d1", questions=[])
    assert s.current_index == 0
    assert s.answered_questions == {}
    assert s.incorrect_questions == []


def test_session_kind_values():
    assert SessionKind("practice_test") is SessionKind.PRACTICE_TEST
    assert SessionKind.STUDY.value == "study"


def test_score_percentage():
    r = SessionResult(total=3, correct_ids=["a", "b"], incorrect_ids=["c"])
    assert r.score_percentage == 67
    assert SessionResult(total=0).score_percentage == 0
