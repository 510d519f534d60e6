"""Service for authoring quizzes and their questions."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import secrets

from quizlive.constants.quiz_constants import (
    DEFAULT_QUESTION_POINTS,
    DEFAULT_TIME_LIMIT_SECONDS,
    JOIN_CODE_ALPHABET,
    JOIN_CODE_LENGTH,
    MAX_TIME_LIMIT_SECONDS,
    MIN_TIME_LIMIT_SECONDS,
    OPTION_COUNT,
)
from quizlive.core.errors import ConflictError, NotFoundError, QuizValidationError
from quizlive.core.models import Question, Quiz, QuizStatus, QuizSummary
from quizlive.storage.base import QuizStore

logger = logging.getLogger(__name__)

_JOIN_CODE_ATTEMPTS = 20


@dataclass(slots=True)
class QuestionDraft:
    """Question as submitted by the authoring form, before validation."""

    question_text: str
    options: list[str]
    correct_option_index: int
    time_limit_seconds: int = DEFAULT_TIME_LIMIT_SECONDS
    points: int = DEFAULT_QUESTION_POINTS
    explanation: str | None = None


class QuizRepository:
    """Validates and persists quizzes, and reads them back for their owner."""

    def __init__(self, store: QuizStore) -> None:
        self._store = store

    def create_quiz(
        self,
        teacher_id: str,
        title: str,
        questions: list[QuestionDraft],
        description: str | None = None,
        time_limit: int | None = None,
        is_randomized: bool = False,
        show_results: bool = True,
    ) -> tuple[Quiz, list[Question]]:
        """Validate the drafts and store one quiz row plus one row per question."""
        cleaned_title = (title or "").strip()
        if not cleaned_title:
            raise QuizValidationError("Quiz title is required")
        if not questions:
            raise QuizValidationError("At least one question is required")
        cleaned_description = (description or "").strip() or None

        quiz = Quiz(
            title=cleaned_title,
            description=cleaned_description,
            teacher_id=teacher_id,
            join_code="",
            status=QuizStatus.DRAFT,
            time_limit=time_limit,
            total_questions=len(questions),
            is_randomized=is_randomized,
            show_results=show_results,
        )
        prepared = [
            self._prepare_question(quiz.id, draft, position)
            for position, draft in enumerate(questions, start=1)
        ]

        for _ in range(_JOIN_CODE_ATTEMPTS):
            quiz.join_code = self._generate_join_code()
            try:
                stored = self._store.add_quiz(quiz, prepared)
            except ConflictError:
                continue
            logger.info(
                "Teacher %s created quiz %s (%d questions, code %s)",
                teacher_id,
                stored.id,
                len(prepared),
                stored.join_code,
            )
            return stored, prepared
        raise ConflictError("Could not allocate a unique join code; try again.")

    def get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self._store.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        return quiz

    def get_questions(self, quiz_id: str) -> list[Question]:
        return self._store.list_questions(quiz_id)

    def list_quizzes(self, teacher_id: str) -> list[QuizSummary]:
        summaries = []
        for quiz in self._store.list_quizzes(teacher_id):
            summaries.append(
                QuizSummary(
                    quiz=quiz,
                    question_count=len(self._store.list_questions(quiz.id)),
                    session_count=self._store.count_sessions(quiz.id),
                )
            )
        return summaries

    def set_status(self, quiz_id: str, status: QuizStatus) -> Quiz:
        """Publish or unpublish a quiz. Live transitions go through GameSession."""
        quiz = self.get_quiz(quiz_id)
        if status not in (QuizStatus.DRAFT, QuizStatus.PUBLISHED):
            raise QuizValidationError("Status must be 'draft' or 'published'.")
        if quiz.is_active:
            raise ConflictError("A live quiz cannot change status; end it first.")
        return self._store.update_quiz(quiz_id, status=status)

    def delete_quiz(self, quiz_id: str) -> None:
        quiz = self.get_quiz(quiz_id)
        if quiz.is_active:
            raise ConflictError("A live quiz cannot be deleted; end it first.")
        self._store.delete_quiz(quiz_id)
        logger.info("Deleted quiz %s", quiz_id)

    def _prepare_question(self, quiz_id: str, draft: QuestionDraft, position: int) -> Question:
        """Validate and normalize a question before storage."""
        cleaned_text = (draft.question_text or "").strip()
        if not cleaned_text:
            raise QuizValidationError(f"Question {position} is required")
        options = self._validate_options(draft.options, position)
        if not isinstance(draft.correct_option_index, int) or not 0 <= draft.correct_option_index < OPTION_COUNT:
            raise QuizValidationError(
                f"Correct option for question {position} must be between 0 and {OPTION_COUNT - 1}"
            )
        time_limit = self._normalize_time_limit(draft.time_limit_seconds, position)
        if draft.points < 0:
            raise QuizValidationError(f"Points for question {position} cannot be negative")
        explanation = (draft.explanation or "").strip() or None

        return Question(
            quiz_id=quiz_id,
            question_text=cleaned_text,
            options=options,
            correct_option_index=draft.correct_option_index,
            order_index=position,
            time_limit_seconds=time_limit,
            points=draft.points,
            explanation=explanation,
        )

    @staticmethod
    def _validate_options(options: list[str], position: int) -> list[str]:
        if len(options) != OPTION_COUNT:
            raise QuizValidationError(f"Question {position} must have exactly {OPTION_COUNT} options")
        cleaned = [(option or "").strip() for option in options]
        if any(not option for option in cleaned):
            raise QuizValidationError(f"All options for question {position} are required")
        return cleaned

    @staticmethod
    def _normalize_time_limit(time_limit_seconds: int | None, position: int) -> int:
        if time_limit_seconds is None:
            return DEFAULT_TIME_LIMIT_SECONDS
        if not isinstance(time_limit_seconds, int) or isinstance(time_limit_seconds, bool):
            raise QuizValidationError("Time limit must be provided as an integer number of seconds.")
        if not MIN_TIME_LIMIT_SECONDS <= time_limit_seconds <= MAX_TIME_LIMIT_SECONDS:
            raise QuizValidationError(
                f"Time limit for question {position} must be between "
                f"{MIN_TIME_LIMIT_SECONDS}-{MAX_TIME_LIMIT_SECONDS} seconds"
            )
        return time_limit_seconds

    @staticmethod
    def _generate_join_code() -> str:
        return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))
