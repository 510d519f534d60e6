"""In-memory store backend, used for single-process deployments and tests."""

from __future__ import annotations

from copy import deepcopy
from datetime import datetime
from threading import Lock

from quizlive.core.errors import ConflictError
from quizlive.core.models import (
    Profile,
    Question,
    Quiz,
    QuizSession,
    SubmittedAnswer,
    utcnow,
)
from quizlive.storage.base import QuizStore, check_answerable


class MemoryStore(QuizStore):
    """Keeps every table in a dict guarded by one lock."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._lock = Lock()
        self._profiles: dict[str, Profile] = {}
        self._quizzes: dict[str, Quiz] = {}
        self._questions: dict[str, Question] = {}
        self._sessions: dict[str, QuizSession] = {}
        self._answers: dict[str, SubmittedAnswer] = {}

    # --- Profiles ---

    def add_profile(self, profile: Profile) -> Profile:
        with self._lock:
            if profile.id in self._profiles:
                raise ConflictError(f"Profile {profile.id} already exists.")
            self._profiles[profile.id] = deepcopy(profile)
            return deepcopy(profile)

    def get_profile(self, profile_id: str) -> Profile | None:
        with self._lock:
            return deepcopy(self._profiles.get(profile_id))

    def update_profile(self, profile_id: str, **fields: object) -> Profile | None:
        with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                return None
            _apply(profile, fields)
            profile.updated_at = utcnow()
            return deepcopy(profile)

    def list_profiles(self, role: str | None = None) -> list[Profile]:
        with self._lock:
            profiles = [
                p for p in self._profiles.values() if role is None or p.role.value == role
            ]
            profiles.sort(key=lambda p: p.created_at, reverse=True)
            return deepcopy(profiles)

    # --- Quizzes and questions ---

    def add_quiz(self, quiz: Quiz, questions: list[Question]) -> Quiz:
        with self._lock:
            if any(q.join_code == quiz.join_code for q in self._quizzes.values()):
                raise ConflictError(f"Join code {quiz.join_code} is already in use.")
            self._quizzes[quiz.id] = deepcopy(quiz)
            for question in questions:
                self._questions[question.id] = deepcopy(question)
            return deepcopy(quiz)

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        with self._lock:
            return deepcopy(self._quizzes.get(quiz_id))

    def get_quiz_by_code(self, join_code: str) -> Quiz | None:
        with self._lock:
            match = next((q for q in self._quizzes.values() if q.join_code == join_code), None)
            return deepcopy(match)

    def list_quizzes(self, teacher_id: str) -> list[Quiz]:
        with self._lock:
            quizzes = [q for q in self._quizzes.values() if q.teacher_id == teacher_id]
            quizzes.sort(key=lambda q: q.created_at, reverse=True)
            return deepcopy(quizzes)

    def update_quiz(self, quiz_id: str, **fields: object) -> Quiz | None:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
            if quiz is None:
                return None
            _apply(quiz, fields)
            quiz.updated_at = utcnow()
            return deepcopy(quiz)

    def delete_quiz(self, quiz_id: str) -> bool:
        with self._lock:
            if self._quizzes.pop(quiz_id, None) is None:
                return False
            session_ids = {s.id for s in self._sessions.values() if s.quiz_id == quiz_id}
            self._questions = {k: q for k, q in self._questions.items() if q.quiz_id != quiz_id}
            self._sessions = {k: s for k, s in self._sessions.items() if k not in session_ids}
            self._answers = {
                k: a for k, a in self._answers.items() if a.session_id not in session_ids
            }
            return True

    def list_questions(self, quiz_id: str) -> list[Question]:
        with self._lock:
            questions = [q for q in self._questions.values() if q.quiz_id == quiz_id]
            questions.sort(key=lambda q: q.order_index)
            return deepcopy(questions)

    # --- Sessions ---

    def add_session(self, session: QuizSession) -> QuizSession:
        with self._lock:
            self._sessions[session.id] = deepcopy(session)
            return deepcopy(session)

    def get_session(self, session_id: str) -> QuizSession | None:
        with self._lock:
            return deepcopy(self._sessions.get(session_id))

    def find_active_session(self, quiz_id: str, student_id: str) -> QuizSession | None:
        with self._lock:
            match = next(
                (
                    s
                    for s in self._sessions.values()
                    if s.quiz_id == quiz_id and s.student_id == student_id and s.is_active
                ),
                None,
            )
            return deepcopy(match)

    def list_sessions(self, quiz_id: str) -> list[QuizSession]:
        with self._lock:
            sessions = [s for s in self._sessions.values() if s.quiz_id == quiz_id]
            sessions.sort(key=lambda s: (-s.score, s.started_at))
            return deepcopy(sessions)

    def list_student_sessions(self, student_id: str, completed_only: bool = False) -> list[QuizSession]:
        with self._lock:
            sessions = [
                s
                for s in self._sessions.values()
                if s.student_id == student_id and (not completed_only or s.completed_at is not None)
            ]
            sessions.sort(key=lambda s: s.completed_at or s.started_at, reverse=True)
            return deepcopy(sessions)

    def count_sessions(self, quiz_id: str) -> int:
        with self._lock:
            return sum(1 for s in self._sessions.values() if s.quiz_id == quiz_id)

    def update_session(self, session_id: str, **fields: object) -> QuizSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            _apply(session, fields)
            session.updated_at = utcnow()
            return deepcopy(session)

    def move_active_sessions(self, quiz_id: str, question_index: int) -> int:
        with self._lock:
            moved = 0
            now = utcnow()
            for session in self._sessions.values():
                if (
                    session.quiz_id == quiz_id
                    and session.is_active
                    and session.current_question < question_index
                ):
                    session.current_question = question_index
                    session.updated_at = now
                    moved += 1
            return moved

    def close_active_sessions(self, quiz_id: str, completed_at: datetime) -> int:
        with self._lock:
            closed = 0
            for session in self._sessions.values():
                if session.quiz_id == quiz_id and session.is_active:
                    session.is_active = False
                    session.completed_at = completed_at
                    session.updated_at = completed_at
                    closed += 1
            return closed

    # --- Answers ---

    def record_answer(self, answer: SubmittedAnswer, position: int, finished: bool = False) -> QuizSession:
        with self._lock:
            session = self._sessions.get(answer.session_id)
            if session is None:
                raise ConflictError(f"Session {answer.session_id} no longer exists.")
            check_answerable(session.is_active, session.current_question, position)
            duplicate = any(
                a.session_id == answer.session_id and a.question_id == answer.question_id
                for a in self._answers.values()
            )
            if duplicate:
                raise ConflictError("This question has already been answered.")
            self._answers[answer.id] = deepcopy(answer)
            session.score += answer.points_earned
            session.time_taken += answer.time_taken
            session.current_question = position + 1
            if finished:
                session.is_active = False
                session.completed_at = answer.answered_at
            session.updated_at = utcnow()
            return deepcopy(session)

    def list_answers(self, session_id: str) -> list[SubmittedAnswer]:
        with self._lock:
            answers = [a for a in self._answers.values() if a.session_id == session_id]
            answers.sort(key=lambda a: a.answered_at)
            return deepcopy(answers)

    def list_question_answers(self, question_id: str) -> list[SubmittedAnswer]:
        with self._lock:
            answers = [a for a in self._answers.values() if a.question_id == question_id]
            answers.sort(key=lambda a: a.answered_at)
            return deepcopy(answers)

    # --- Leaderboard view ---

    def completed_sessions(self, quiz_id: str | None = None) -> list[tuple[QuizSession, Quiz]]:
        with self._lock:
            pairs = []
            for session in self._sessions.values():
                if session.completed_at is None:
                    continue
                if quiz_id is not None and session.quiz_id != quiz_id:
                    continue
                quiz = self._quizzes.get(session.quiz_id)
                if quiz is not None:
                    pairs.append((deepcopy(session), deepcopy(quiz)))
            return pairs


def _apply(target: object, fields: dict[str, object]) -> None:
    for name, value in fields.items():
        if not hasattr(target, name):
            raise AttributeError(f"{type(target).__name__} has no field '{name}'")
        setattr(target, name, value)
