from __future__ import annotations

import pytest

from quizlive.core.errors import ConflictError
from quizlive.core.models import Question, Quiz, QuizSession, QuizStatus, SubmittedAnswer, utcnow
from quizlive.storage import MemoryStore, SqlStore, create_store


def _quiz_with_question(store, join_code="ABC123"):
    quiz = Quiz(title="Stored", teacher_id="teacher-1", join_code=join_code, total_questions=1)
    question = Question(
        quiz_id=quiz.id,
        question_text="Pick A",
        options=["a", "b", "c", "d"],
        correct_option_index=0,
        order_index=1,
    )
    return store.add_quiz(quiz, [question]), question


def test_round_trips_quiz_and_questions(store):
    quiz, question = _quiz_with_question(store)

    loaded = store.get_quiz(quiz.id)
    assert loaded.title == "Stored"
    assert loaded.status is QuizStatus.DRAFT
    assert loaded.created_at.tzinfo is not None
    assert store.get_quiz_by_code("ABC123").id == quiz.id
    assert store.list_questions(quiz.id)[0].options == ["a", "b", "c", "d"]
    assert store.get_quiz("missing") is None


def test_join_code_must_be_unique(store):
    _quiz_with_question(store)
    with pytest.raises(ConflictError):
        _quiz_with_question(store)


def test_one_answer_per_question(store):
    quiz, question = _quiz_with_question(store)
    session = store.add_session(QuizSession(quiz_id=quiz.id, student_id="s1", nickname="Sam", total_questions=1))

    def answer():
        return SubmittedAnswer(session_id=session.id, question_id=question.id, selected_option_index=0, is_correct=True)

    graded = answer()
    graded.points_earned = 2
    graded.time_taken = 7
    updated = store.record_answer(graded, 0, finished=True)
    assert (updated.score, updated.time_taken, updated.current_question) == (2, 7, 1)
    assert updated.is_active is False
    assert updated.completed_at is not None
    with pytest.raises(ConflictError):
        store.record_answer(answer(), 0)
    assert store.get_session(session.id).score == 2
    assert len(store.list_answers(session.id)) == 1


def test_record_answer_adds_to_stored_totals(store):
    quiz, question = _quiz_with_question(store)
    session = store.add_session(QuizSession(quiz_id=quiz.id, student_id="s1", nickname="Sam", total_questions=3))
    store.update_session(session.id, score=5, time_taken=10)

    updated = store.record_answer(
        SubmittedAnswer(
            session_id=session.id,
            question_id=question.id,
            selected_option_index=0,
            is_correct=True,
            points_earned=1,
            time_taken=3,
        ),
        0,
    )

    assert (updated.score, updated.time_taken, updated.current_question) == (6, 13, 1)
    assert updated.is_active is True


def test_record_answer_refuses_moved_or_closed_sessions(store):
    quiz, question = _quiz_with_question(store)
    session = store.add_session(QuizSession(quiz_id=quiz.id, student_id="s1", nickname="Sam", total_questions=3))
    store.move_active_sessions(quiz.id, 1)

    def answer():
        return SubmittedAnswer(session_id=session.id, question_id=question.id, selected_option_index=1, is_correct=False)

    with pytest.raises(ConflictError, match="no longer current"):
        store.record_answer(answer(), 0)
    assert store.get_session(session.id).current_question == 1

    store.close_active_sessions(quiz.id, utcnow())
    with pytest.raises(ConflictError, match="already finished"):
        store.record_answer(answer(), 1)
    assert store.list_answers(session.id) == []


def test_update_rejects_unknown_fields(store):
    quiz, _ = _quiz_with_question(store)
    with pytest.raises(AttributeError):
        store.update_quiz(quiz.id, colour="blue")


def test_bulk_session_updates(store):
    quiz, _ = _quiz_with_question(store)
    behind = store.add_session(QuizSession(quiz_id=quiz.id, student_id="s1", nickname="A", total_questions=3))
    ahead = store.add_session(
        QuizSession(quiz_id=quiz.id, student_id="s2", nickname="B", total_questions=3, current_question=2)
    )

    assert store.move_active_sessions(quiz.id, 1) == 1
    assert store.get_session(behind.id).current_question == 1
    assert store.get_session(ahead.id).current_question == 2

    now = utcnow()
    assert store.close_active_sessions(quiz.id, now) == 2
    assert store.find_active_session(quiz.id, "s1") is None
    assert [s.quiz_id for s, _ in store.completed_sessions(quiz.id)] == [quiz.id, quiz.id]


def test_create_store_factory():
    assert isinstance(create_store("memory"), MemoryStore)
    sql = create_store("sql", "sqlite://")
    assert isinstance(sql, SqlStore)
    assert sql.backend_name == "sql"
    sql.close()
    with pytest.raises(ValueError):
        create_store("sql")
    with pytest.raises(ValueError):
        create_store("redis")
