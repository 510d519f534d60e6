"""Service for students joining live quizzes by code."""

from __future__ import annotations

import logging

from quizlive.constants.quiz_constants import JOIN_CODE_LENGTH
from quizlive.core.errors import NotFoundError, QuizValidationError
from quizlive.core.models import Profile, Quiz, QuizSession
from quizlive.storage.base import QuizStore

logger = logging.getLogger(__name__)

_MAX_NICKNAME_LENGTH = 100


class LobbyManager:
    """Resolves join codes and creates or resumes student sessions."""

    def __init__(self, store: QuizStore) -> None:
        self._store = store

    def find_live_quiz(self, join_code: str) -> Quiz:
        code = (join_code or "").strip().upper()
        if len(code) != JOIN_CODE_LENGTH:
            raise NotFoundError(f"Enter the {JOIN_CODE_LENGTH}-character code provided by your teacher")
        quiz = self._store.get_quiz_by_code(code)
        if quiz is None or not quiz.is_active:
            raise NotFoundError("Quiz not found or not active")
        return quiz

    def join(self, student: Profile, join_code: str, nickname: str) -> tuple[QuizSession, bool]:
        """Join a live quiz. Returns the session and whether it was resumed."""
        quiz = self.find_live_quiz(join_code)
        cleaned = (nickname or "").strip()
        if not cleaned:
            raise QuizValidationError("Please enter a nickname")
        if len(cleaned) > _MAX_NICKNAME_LENGTH:
            raise QuizValidationError(f"Nickname must be at most {_MAX_NICKNAME_LENGTH} characters")

        existing = self._store.find_active_session(quiz.id, student.id)
        if existing is not None:
            logger.info("Student %s resumed session %s", student.id, existing.id)
            return existing, True

        session = QuizSession(
            quiz_id=quiz.id,
            student_id=student.id,
            nickname=cleaned,
            total_questions=quiz.total_questions,
            current_question=quiz.current_question_index,
        )
        stored = self._store.add_session(session)
        logger.info("Student %s joined quiz %s as '%s'", student.id, quiz.id, cleaned)
        return stored, False

    def get_session(self, session_id: str, student_id: str) -> QuizSession:
        session = self._store.get_session(session_id)
        if session is None or session.student_id != student_id:
            raise NotFoundError("Quiz session not found")
        return session
