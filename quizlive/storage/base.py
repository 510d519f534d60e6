"""Storage interface shared by the in-memory and SQL backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from quizlive.core.errors import ConflictError
from quizlive.core.models import (
    Profile,
    Question,
    Quiz,
    QuizSession,
    SubmittedAnswer,
)


class QuizStore(ABC):
    """Row-level access to profiles, quizzes, questions, sessions and answers.

    Every method is a single read or a single write transaction. Methods that
    return domain objects return detached copies; mutating them has no effect
    until they are passed back through an ``update_*`` call. Updates take
    keyword fields and follow last-write-wins semantics.
    """

    backend_name: str = "abstract"

    # --- Profiles ---

    @abstractmethod
    def add_profile(self, profile: Profile) -> Profile: ...

    @abstractmethod
    def get_profile(self, profile_id: str) -> Profile | None: ...

    @abstractmethod
    def update_profile(self, profile_id: str, **fields: object) -> Profile | None: ...

    @abstractmethod
    def list_profiles(self, role: str | None = None) -> list[Profile]:
        """Return profiles newest first, optionally restricted to one role."""

    # --- Quizzes and questions ---

    @abstractmethod
    def add_quiz(self, quiz: Quiz, questions: list[Question]) -> Quiz:
        """Persist one quiz row together with its question rows."""

    @abstractmethod
    def get_quiz(self, quiz_id: str) -> Quiz | None: ...

    @abstractmethod
    def get_quiz_by_code(self, join_code: str) -> Quiz | None: ...

    @abstractmethod
    def list_quizzes(self, teacher_id: str) -> list[Quiz]:
        """Return the teacher's quizzes newest first."""

    @abstractmethod
    def update_quiz(self, quiz_id: str, **fields: object) -> Quiz | None: ...

    @abstractmethod
    def delete_quiz(self, quiz_id: str) -> bool:
        """Delete a quiz with its questions, sessions and answers."""

    @abstractmethod
    def list_questions(self, quiz_id: str) -> list[Question]:
        """Return the quiz's questions ordered by ``order_index``."""

    # --- Sessions ---

    @abstractmethod
    def add_session(self, session: QuizSession) -> QuizSession: ...

    @abstractmethod
    def get_session(self, session_id: str) -> QuizSession | None: ...

    @abstractmethod
    def find_active_session(self, quiz_id: str, student_id: str) -> QuizSession | None: ...

    @abstractmethod
    def list_sessions(self, quiz_id: str) -> list[QuizSession]:
        """Return every session of a quiz, highest score first."""

    @abstractmethod
    def list_student_sessions(self, student_id: str, completed_only: bool = False) -> list[QuizSession]:
        """Return the student's sessions, most recently completed first."""

    @abstractmethod
    def count_sessions(self, quiz_id: str) -> int: ...

    @abstractmethod
    def update_session(self, session_id: str, **fields: object) -> QuizSession | None: ...

    @abstractmethod
    def move_active_sessions(self, quiz_id: str, question_index: int) -> int:
        """Move every active session of the quiz that is behind ``question_index`` up to it."""

    @abstractmethod
    def close_active_sessions(self, quiz_id: str, completed_at: datetime) -> int:
        """Mark every active session of the quiz as completed."""

    # --- Answers ---

    @abstractmethod
    def record_answer(self, answer: SubmittedAnswer, position: int, finished: bool = False) -> QuizSession:
        """Insert an answer row and advance its session in one transaction.

        The answer's points and time are added to the stored totals and the
        session pointer moves to ``position + 1``. Raises ``ConflictError``
        when the session is no longer active, its stored pointer is not at
        ``position``, or it already answered the question.
        """

    @abstractmethod
    def list_answers(self, session_id: str) -> list[SubmittedAnswer]:
        """Return a session's answers in submission order."""

    @abstractmethod
    def list_question_answers(self, question_id: str) -> list[SubmittedAnswer]: ...

    # --- Leaderboard view ---

    @abstractmethod
    def completed_sessions(self, quiz_id: str | None = None) -> list[tuple[QuizSession, Quiz]]:
        """Return completed sessions joined with their quiz."""

    def close(self) -> None:
        """Release backend resources."""


def check_answerable(is_active: bool, current_question: int, position: int) -> None:
    """Raise ``ConflictError`` unless a session at ``current_question`` can answer ``position``."""
    if not is_active:
        raise ConflictError("This quiz session has already finished.")
    if current_question != position:
        raise ConflictError("That question is no longer current; refresh to continue.")
