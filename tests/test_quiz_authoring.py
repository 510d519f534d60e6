from __future__ import annotations

import pytest

from quizlive.constants.quiz_constants import JOIN_CODE_ALPHABET, JOIN_CODE_LENGTH
from quizlive.core.errors import ConflictError, NotFoundError, PermissionDeniedError, QuizValidationError
from quizlive.core.models import QuizStatus, Role
from quizlive.core.services.profile_directory import Identity
from quizlive.core.services.quiz_repository import QuestionDraft


def test_create_quiz_stores_questions_in_order(manager, teacher, drafts):
    quiz, questions = manager.create_quiz(teacher, "  Arithmetic  ", drafts, description=" ")

    assert quiz.title == "Arithmetic"
    assert quiz.description is None
    assert quiz.status is QuizStatus.DRAFT
    assert quiz.total_questions == 3
    assert len(quiz.join_code) == JOIN_CODE_LENGTH
    assert set(quiz.join_code) <= set(JOIN_CODE_ALPHABET)
    assert [q.order_index for q in questions] == [1, 2, 3]

    stored_quiz, stored_questions = manager.get_quiz_with_questions(teacher, quiz.id)
    assert stored_quiz.id == quiz.id
    assert [q.question_text for q in stored_questions] == [d.question_text for d in drafts]


def test_join_codes_are_unique(manager, teacher, draft_factory):
    codes = {manager.create_quiz(teacher, f"Quiz {n}", draft_factory(1))[0].join_code for n in range(10)}
    assert len(codes) == 10


@pytest.mark.parametrize(
    "title, questions, message",
    [
        ("", [QuestionDraft("Q", ["a", "b", "c", "d"], 0)], "Quiz title is required"),
        ("Title", [], "At least one question is required"),
        ("Title", [QuestionDraft("  ", ["a", "b", "c", "d"], 0)], "Question 1 is required"),
        ("Title", [QuestionDraft("Q", ["a", "", "c", "d"], 0)], "All options for question 1 are required"),
        ("Title", [QuestionDraft("Q", ["a", "b", "c"], 0)], "exactly 4 options"),
        ("Title", [QuestionDraft("Q", ["a", "b", "c", "d"], 4)], "Correct option for question 1"),
        (
            "Title",
            [QuestionDraft("Q", ["a", "b", "c", "d"], 0), QuestionDraft("Q2", ["a", "b", "c", "d"], 0, 4)],
            "Time limit for question 2 must be between 5-300 seconds",
        ),
        ("Title", [QuestionDraft("Q", ["a", "b", "c", "d"], 0, 301)], "between 5-300 seconds"),
    ],
)
def test_create_quiz_validation(manager, teacher, title, questions, message):
    with pytest.raises(QuizValidationError, match=message):
        manager.create_quiz(teacher, title, questions)
    assert manager.list_quizzes(teacher) == []


def test_only_approved_teachers_author(manager, student, drafts):
    pending = manager.ensure_profile(Identity(user_id="teacher-new", role=Role.TEACHER))
    assert pending.is_approved is False

    with pytest.raises(PermissionDeniedError, match="awaiting admin approval"):
        manager.create_quiz(pending, "Quiz", drafts)
    with pytest.raises(PermissionDeniedError, match="Teacher access required"):
        manager.create_quiz(student, "Quiz", drafts)


def test_import_quiz_from_text(manager, teacher):
    text = "Q: Sky colour?\nA: Blue\nB: Green\nC: Red\nD: Grey\nCORRECT: A\nTIMELIMIT: 15\n"
    quiz, questions = manager.import_quiz(teacher, "Nature", text)

    assert quiz.total_questions == 1
    assert questions[0].time_limit_seconds == 15
    assert manager.export_quiz(teacher, quiz.id).startswith("Q: Sky colour?")


def test_list_quizzes_counts_questions_and_sessions(manager, teacher, live_quiz, student):
    quiz, _ = live_quiz
    manager.join_quiz(student, quiz.join_code, "Sam")

    summaries = manager.list_quizzes(teacher)

    assert len(summaries) == 1
    assert summaries[0].question_count == 3
    assert summaries[0].session_count == 1


def test_other_teachers_cannot_see_quiz(manager, teacher, other_teacher, drafts):
    quiz, _ = manager.create_quiz(teacher, "Private", drafts)

    with pytest.raises(NotFoundError):
        manager.get_quiz_with_questions(other_teacher, quiz.id)
    with pytest.raises(NotFoundError):
        manager.delete_quiz(other_teacher, quiz.id)
    assert manager.list_quizzes(other_teacher) == []


def test_publish_and_delete(manager, teacher, drafts):
    quiz, _ = manager.create_quiz(teacher, "Quiz", drafts)

    assert manager.set_quiz_status(teacher, quiz.id, QuizStatus.PUBLISHED).status is QuizStatus.PUBLISHED
    with pytest.raises(QuizValidationError):
        manager.set_quiz_status(teacher, quiz.id, QuizStatus.ACTIVE)

    manager.delete_quiz(teacher, quiz.id)
    with pytest.raises(NotFoundError):
        manager.get_quiz_with_questions(teacher, quiz.id)


def test_live_quiz_cannot_be_deleted(manager, teacher, live_quiz):
    quiz, _ = live_quiz
    with pytest.raises(ConflictError):
        manager.delete_quiz(teacher, quiz.id)
    with pytest.raises(ConflictError):
        manager.set_quiz_status(teacher, quiz.id, QuizStatus.DRAFT)


def test_delete_removes_sessions_and_answers(manager, store, teacher, live_quiz, student):
    quiz, questions = live_quiz
    session, _ = manager.join_quiz(student, quiz.join_code, "Sam")
    manager.submit_answer(student, session.id, 0, time_taken=3)
    manager.end_quiz(teacher, quiz.id)

    manager.delete_quiz(teacher, quiz.id)

    assert store.get_session(session.id) is None
    assert store.list_answers(session.id) == []
    assert store.list_questions(quiz.id) == []
    assert manager.student_results(student) == []
