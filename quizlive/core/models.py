"""Domain models for the quiz platform."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for every stored datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class QuizStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(slots=True)
class Profile:
    """A user known to the platform, keyed by the identity provider's id."""

    id: str
    email: str
    role: Role
    full_name: str | None = None
    avatar_url: str | None = None
    is_approved: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def can_host(self) -> bool:
        return self.role is Role.TEACHER and self.is_approved


@dataclass(slots=True)
class Question:
    """Multiple-choice quiz question with exactly four options."""

    quiz_id: str
    question_text: str
    options: list[str]
    correct_option_index: int
    order_index: int
    time_limit_seconds: int = 30
    points: int = 1
    explanation: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Quiz:
    """Quiz metadata plus the shared live-hosting pointer."""

    title: str
    teacher_id: str
    join_code: str
    description: str | None = None
    status: QuizStatus = QuizStatus.DRAFT
    current_question_index: int = 0
    live_started_at: datetime | None = None
    question_started_at: datetime | None = None
    results_revealed: bool = False
    time_limit: int | None = None
    total_questions: int = 0
    is_randomized: bool = False
    show_results: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status is QuizStatus.ACTIVE


@dataclass(slots=True)
class QuizSession:
    """One student's participation in a quiz."""

    quiz_id: str
    student_id: str
    nickname: str
    total_questions: int
    current_question: int = 0
    score: int = 0
    is_active: bool = True
    time_taken: int = 0
    completed_at: datetime | None = None
    id: str = field(default_factory=new_id)
    started_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def percentage(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return (self.score / self.total_questions) * 100


@dataclass(slots=True)
class SubmittedAnswer:
    """Represents an option submitted by a student for one question."""

    session_id: str
    question_id: str
    selected_option_index: int
    is_correct: bool
    points_earned: int = 0
    time_taken: int = 0
    id: str = field(default_factory=new_id)
    answered_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class LeaderboardRow:
    """Immutable snapshot of a completed session, ranked for display."""

    rank: int
    session_id: str
    quiz_id: str
    quiz_title: str
    nickname: str
    score: int
    total_questions: int
    time_taken: int
    completed_at: datetime | None

    @property
    def percentage(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return (self.score / self.total_questions) * 100


@dataclass(slots=True)
class QuizSummary:
    """Quiz listing entry for the teacher's overview."""

    quiz: Quiz
    question_count: int
    session_count: int


@dataclass(slots=True)
class QuestionResults:
    """Answer distribution for one question, shown when results are revealed."""

    question: Question
    option_counts: list[int]
    answer_count: int
    correct_percentage: float
