"""Service for the live quiz state machine: hosting, answers and scoring."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
import random

from quizlive.constants.quiz_constants import OPTION_COUNT, TIMEOUT_OPTION_INDEX
from quizlive.core.errors import ConflictError, NotFoundError, QuizValidationError
from quizlive.core.models import (
    Question,
    QuestionResults,
    Quiz,
    QuizSession,
    QuizStatus,
    SubmittedAnswer,
    utcnow,
)
from quizlive.storage.base import QuizStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DisplayedQuestion:
    """A question as one student sees it, options possibly shuffled."""

    question: Question
    position: int
    options: list[str]
    option_order: list[int]
    started_at: datetime | None
    deadline: datetime | None

    def to_original_index(self, display_index: int) -> int:
        if display_index == TIMEOUT_OPTION_INDEX:
            return TIMEOUT_OPTION_INDEX
        return self.option_order[display_index]

    def to_display_index(self, original_index: int) -> int:
        return self.option_order.index(original_index)


@dataclass(slots=True)
class AnswerOutcome:
    """Result of a submitted answer, returned to the student right away."""

    answer: SubmittedAnswer
    session: QuizSession
    correct_option_index: int
    explanation: str | None
    completed: bool
    show_results: bool = True


@dataclass(slots=True)
class HostSnapshot:
    """Everything the host console polls for."""

    quiz: Quiz
    question: Question | None
    results: QuestionResults | None
    sessions: list[QuizSession] = field(default_factory=list)

    @property
    def active_count(self) -> int:
        return sum(1 for s in self.sessions if s.is_active)

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.sessions if not s.is_active)


class GameSession:
    """Advances quizzes through their questions and records student answers.

    Every transition is a row update in the store. The quiz row carries the
    shared question pointer; each student session carries its own pointer
    which the host overwrites when advancing (last-write-wins).
    """

    def __init__(self, store: QuizStore) -> None:
        self._store = store

    # --- Hosting ---

    def start_quiz(self, quiz: Quiz) -> Question:
        if quiz.is_active:
            raise ConflictError("Quiz is already live.")
        questions = self._store.list_questions(quiz.id)
        if not questions:
            raise ConflictError("Quiz has no questions to host.")
        now = utcnow()
        self._store.update_quiz(
            quiz.id,
            status=QuizStatus.ACTIVE,
            current_question_index=0,
            results_revealed=False,
            live_started_at=now,
            question_started_at=now,
            total_questions=len(questions),
        )
        logger.info("Quiz %s is live (%d questions)", quiz.id, len(questions))
        return questions[0]

    def get_current_question(self, quiz: Quiz) -> Question | None:
        questions = self._store.list_questions(quiz.id)
        if 0 <= quiz.current_question_index < len(questions):
            return questions[quiz.current_question_index]
        return None

    def reveal_results(self, quiz: Quiz) -> QuestionResults:
        self._require_live(quiz)
        question = self.get_current_question(quiz)
        if question is None:
            raise ConflictError("There is no current question to reveal.")
        self._store.update_quiz(quiz.id, results_revealed=True)
        logger.info("Quiz %s revealed results for question %d", quiz.id, quiz.current_question_index + 1)
        return self.question_results(quiz, question)

    def next_question(self, quiz: Quiz) -> Question | None:
        """Move the quiz and every active session forward; ends the quiz after the last question."""
        self._require_live(quiz)
        new_index = quiz.current_question_index + 1
        if new_index >= quiz.total_questions:
            self.end_quiz(quiz)
            return None

        self._store.update_quiz(
            quiz.id,
            current_question_index=new_index,
            results_revealed=False,
            question_started_at=utcnow(),
        )
        moved = self._store.move_active_sessions(quiz.id, new_index)
        logger.info("Quiz %s advanced to question %d (%d sessions moved)", quiz.id, new_index + 1, moved)
        questions = self._store.list_questions(quiz.id)
        return questions[new_index] if new_index < len(questions) else None

    def end_quiz(self, quiz: Quiz) -> int:
        self._require_live(quiz)
        now = utcnow()
        self._store.update_quiz(quiz.id, status=QuizStatus.COMPLETED, results_revealed=False)
        closed = self._store.close_active_sessions(quiz.id, now)
        logger.info("Quiz %s ended; %d active sessions closed", quiz.id, closed)
        return closed

    def question_results(self, quiz: Quiz, question: Question) -> QuestionResults:
        """Answer counts for the question, limited to the current live run."""
        run_sessions = {
            s.id
            for s in self._store.list_sessions(quiz.id)
            if quiz.live_started_at is None or s.started_at >= quiz.live_started_at
        }
        answers = [
            a for a in self._store.list_question_answers(question.id) if a.session_id in run_sessions
        ]
        counts = [0] * OPTION_COUNT
        for answer in answers:
            if 0 <= answer.selected_option_index < OPTION_COUNT:
                counts[answer.selected_option_index] += 1
        correct = sum(1 for a in answers if a.is_correct)
        percentage = (correct / len(answers)) * 100 if answers else 0.0
        return QuestionResults(
            question=question,
            option_counts=counts,
            answer_count=len(answers),
            correct_percentage=percentage,
        )

    def host_snapshot(self, quiz: Quiz) -> HostSnapshot:
        question = self.get_current_question(quiz) if quiz.is_active else None
        results = None
        if question is not None and quiz.results_revealed:
            results = self.question_results(quiz, question)
        return HostSnapshot(
            quiz=quiz,
            question=question,
            results=results,
            sessions=self._store.list_sessions(quiz.id),
        )

    # --- Student answers ---

    def displayed_question(self, quiz: Quiz, session: QuizSession) -> DisplayedQuestion | None:
        """Return the session's current question, or None once past the last one."""
        questions = self._store.list_questions(quiz.id)
        position = session.current_question
        if not 0 <= position < len(questions):
            return None
        question = questions[position]

        order = list(range(len(question.options)))
        if quiz.is_randomized:
            random.Random(f"{session.id}:{question.id}").shuffle(order)

        if position == quiz.current_question_index and quiz.question_started_at is not None:
            started_at = max(quiz.question_started_at, session.started_at)
        else:
            started_at = session.updated_at
        deadline = started_at + timedelta(seconds=question.time_limit_seconds) if started_at else None
        return DisplayedQuestion(
            question=question,
            position=position,
            options=[question.options[i] for i in order],
            option_order=order,
            started_at=started_at,
            deadline=deadline,
        )

    def submit_answer(
        self,
        quiz: Quiz,
        session: QuizSession,
        selected_option_index: int,
        time_taken: int | None = None,
        question_id: str | None = None,
    ) -> AnswerOutcome:
        """Record an answer for the session's current question and update its score.

        ``selected_option_index`` is in display order; -1 records a timeout.
        """
        if not session.is_active:
            raise ConflictError("This quiz session has already finished.")
        shown = self.displayed_question(quiz, session)
        if shown is None:
            self.complete_session(session)
            raise ConflictError("There are no more questions in this quiz.")
        question = shown.question
        if question_id is not None and question_id != question.id:
            raise ConflictError("That question is no longer current; refresh to continue.")
        if selected_option_index != TIMEOUT_OPTION_INDEX and not 0 <= selected_option_index < OPTION_COUNT:
            raise QuizValidationError(
                f"Selected option must be between 0 and {OPTION_COUNT - 1}, or {TIMEOUT_OPTION_INDEX} for a timeout."
            )

        original_index = shown.to_original_index(selected_option_index)
        is_correct = original_index == question.correct_option_index
        points = question.points if is_correct else 0
        elapsed = self._clamp_time(question, shown, time_taken)

        answer = SubmittedAnswer(
            session_id=session.id,
            question_id=question.id,
            selected_option_index=original_index,
            is_correct=is_correct,
            points_earned=points,
            time_taken=elapsed,
        )
        finished = shown.position + 1 >= session.total_questions
        updated = self._store.record_answer(answer, shown.position, finished=finished)

        return AnswerOutcome(
            answer=answer,
            session=updated,
            correct_option_index=shown.to_display_index(question.correct_option_index),
            explanation=question.explanation,
            completed=not updated.is_active,
            show_results=quiz.show_results,
        )

    def record_timeout(self, quiz: Quiz, session: QuizSession, question_id: str | None = None) -> AnswerOutcome:
        """Auto-submit fired by the client countdown."""
        shown = self.displayed_question(quiz, session)
        limit = shown.question.time_limit_seconds if shown is not None else None
        return self.submit_answer(
            quiz,
            session,
            TIMEOUT_OPTION_INDEX,
            time_taken=limit,
            question_id=question_id,
        )

    def complete_session(self, session: QuizSession) -> QuizSession:
        if not session.is_active:
            return session
        updated = self._store.update_session(session.id, is_active=False, completed_at=utcnow())
        if updated is None:
            raise NotFoundError("Quiz session not found")
        logger.info("Session %s completed with score %d", session.id, updated.score)
        return updated

    @staticmethod
    def _clamp_time(question: Question, shown: DisplayedQuestion, time_taken: int | None) -> int:
        if time_taken is None:
            if shown.started_at is None:
                return 0
            time_taken = int((utcnow() - shown.started_at).total_seconds())
        return max(0, min(int(time_taken), question.time_limit_seconds))

    @staticmethod
    def _require_live(quiz: Quiz) -> None:
        if not quiz.is_active:
            raise ConflictError("Quiz is not live.")
