from __future__ import annotations

import pytest

from quizlive.core.models import Profile, Role
from quizlive.core.quiz_manager import QuizManager
from quizlive.core.services.profile_directory import Identity
from quizlive.core.services.quiz_repository import QuestionDraft
from quizlive.storage import MemoryStore, SqlStore


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        backend = MemoryStore()
    else:
        backend = SqlStore.from_url("sqlite://")
    yield backend
    backend.close()


@pytest.fixture
def manager(store) -> QuizManager:
    return QuizManager(store)


@pytest.fixture
def admin(manager: QuizManager) -> Profile:
    return manager.ensure_profile(Identity(user_id="admin-1", role=Role.ADMIN, email="admin@example.com"))


@pytest.fixture
def teacher(manager: QuizManager, admin: Profile) -> Profile:
    manager.ensure_profile(Identity(user_id="teacher-1", role=Role.TEACHER, email="teacher@example.com"))
    return manager.approve_teacher(admin, "teacher-1")


@pytest.fixture
def other_teacher(manager: QuizManager, admin: Profile) -> Profile:
    manager.ensure_profile(Identity(user_id="teacher-2", role=Role.TEACHER, email="other@example.com"))
    return manager.approve_teacher(admin, "teacher-2")


@pytest.fixture
def make_student(manager: QuizManager):
    def factory(user_id: str = "student-1") -> Profile:
        return manager.ensure_profile(Identity(user_id=user_id, role=Role.STUDENT, email=f"{user_id}@example.com"))

    return factory


@pytest.fixture
def student(make_student) -> Profile:
    return make_student()


def make_drafts(count: int = 3, points: int = 1) -> list[QuestionDraft]:
    return [
        QuestionDraft(
            question_text=f"What is {n} + {n}?",
            options=[str(n * 2), str(n * 2 + 1), str(n * 2 + 2), str(n * 2 + 3)],
            correct_option_index=0,
            time_limit_seconds=20,
            points=points,
        )
        for n in range(1, count + 1)
    ]


@pytest.fixture
def drafts() -> list[QuestionDraft]:
    return make_drafts()


@pytest.fixture
def live_quiz(manager: QuizManager, teacher: Profile, drafts):
    quiz, _ = manager.create_quiz(teacher, "Arithmetic", drafts, description="Warm-up")
    manager.start_quiz(teacher, quiz.id)
    return manager.get_quiz_with_questions(teacher, quiz.id)


@pytest.fixture
def draft_factory():
    return make_drafts
