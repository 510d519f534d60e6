"""Business logic shared by every API route: role guards plus service delegation."""

from __future__ import annotations

from dataclasses import dataclass

from quizlive.constants.quiz_constants import SESSION_LEADERBOARD_LIMIT
from quizlive.core.errors import NotFoundError
from quizlive.core.models import (
    LeaderboardRow,
    Profile,
    Question,
    QuestionResults,
    Quiz,
    QuizSession,
    QuizStatus,
    QuizSummary,
)
from quizlive.core.quiz_exporter import export_quiz_text
from quizlive.core.quiz_importer import parse_quiz_text
from quizlive.core.services.game_session import AnswerOutcome, DisplayedQuestion, GameSession, HostSnapshot
from quizlive.core.services.lobby_manager import LobbyManager
from quizlive.core.services.profile_directory import Identity, ProfileDirectory
from quizlive.core.services.quiz_repository import QuestionDraft, QuizRepository
from quizlive.core.services.scoreboard import Scoreboard, StudentResult
from quizlive.storage.base import QuizStore


@dataclass(slots=True)
class SessionView:
    """What a student's browser polls for: the current question or final results."""

    session: QuizSession
    quiz: Quiz
    question: DisplayedQuestion | None
    leaderboard: list[LeaderboardRow]


class QuizManager:
    """Facade for quiz services: Profiles, Repository, Lobby, GameSession and Scoreboard."""

    def __init__(self, store: QuizStore) -> None:
        self.store = store
        self._profiles = ProfileDirectory(store)
        self._repository = QuizRepository(store)
        self._lobby = LobbyManager(store)
        self._session = GameSession(store)
        self._scoreboard = Scoreboard(store)

    @property
    def backend_name(self) -> str:
        return self.store.backend_name

    # --- Profiles ---

    def ensure_profile(self, identity: Identity) -> Profile:
        return self._profiles.ensure_profile(identity)

    def update_profile(self, profile: Profile, full_name: str | None = None, avatar_url: str | None = None) -> Profile:
        return self._profiles.update_profile(profile.id, full_name=full_name, avatar_url=avatar_url)

    def list_profiles(self, admin: Profile) -> list[Profile]:
        self._profiles.require_admin(admin)
        return self._profiles.list_profiles()

    def list_teachers(self, admin: Profile) -> list[Profile]:
        self._profiles.require_admin(admin)
        return self._profiles.list_teachers()

    def approve_teacher(self, admin: Profile, teacher_id: str) -> Profile:
        self._profiles.require_admin(admin)
        return self._profiles.set_teacher_approval(teacher_id, True)

    def reject_teacher(self, admin: Profile, teacher_id: str) -> Profile:
        self._profiles.require_admin(admin)
        return self._profiles.set_teacher_approval(teacher_id, False)

    # --- Quiz authoring ---

    def create_quiz(
        self,
        teacher: Profile,
        title: str,
        questions: list[QuestionDraft],
        description: str | None = None,
        time_limit: int | None = None,
        is_randomized: bool = False,
        show_results: bool = True,
    ) -> tuple[Quiz, list[Question]]:
        self._profiles.require_teacher(teacher)
        return self._repository.create_quiz(
            teacher.id,
            title,
            questions,
            description=description,
            time_limit=time_limit,
            is_randomized=is_randomized,
            show_results=show_results,
        )

    def import_quiz(
        self,
        teacher: Profile,
        title: str,
        text: str,
        description: str | None = None,
    ) -> tuple[Quiz, list[Question]]:
        self._profiles.require_teacher(teacher)
        drafts = parse_quiz_text(text)
        return self._repository.create_quiz(teacher.id, title, drafts, description=description)

    def export_quiz(self, teacher: Profile, quiz_id: str) -> str:
        quiz = self._owned_quiz(teacher, quiz_id)
        return export_quiz_text(self._repository.get_questions(quiz.id))

    def list_quizzes(self, teacher: Profile) -> list[QuizSummary]:
        self._profiles.require_teacher(teacher)
        return self._repository.list_quizzes(teacher.id)

    def get_quiz_with_questions(self, teacher: Profile, quiz_id: str) -> tuple[Quiz, list[Question]]:
        quiz = self._owned_quiz(teacher, quiz_id)
        return quiz, self._repository.get_questions(quiz.id)

    def set_quiz_status(self, teacher: Profile, quiz_id: str, status: QuizStatus) -> Quiz:
        quiz = self._owned_quiz(teacher, quiz_id)
        return self._repository.set_status(quiz.id, status)

    def delete_quiz(self, teacher: Profile, quiz_id: str) -> None:
        quiz = self._owned_quiz(teacher, quiz_id)
        self._repository.delete_quiz(quiz.id)

    # --- Live hosting ---

    def start_quiz(self, teacher: Profile, quiz_id: str) -> HostSnapshot:
        quiz = self._owned_quiz(teacher, quiz_id)
        self._session.start_quiz(quiz)
        return self._host_snapshot(quiz.id)

    def reveal_results(self, teacher: Profile, quiz_id: str) -> QuestionResults:
        quiz = self._owned_quiz(teacher, quiz_id)
        return self._session.reveal_results(quiz)

    def next_question(self, teacher: Profile, quiz_id: str) -> HostSnapshot:
        quiz = self._owned_quiz(teacher, quiz_id)
        self._session.next_question(quiz)
        return self._host_snapshot(quiz.id)

    def end_quiz(self, teacher: Profile, quiz_id: str) -> HostSnapshot:
        quiz = self._owned_quiz(teacher, quiz_id)
        self._session.end_quiz(quiz)
        return self._host_snapshot(quiz.id)

    def host_snapshot(self, teacher: Profile, quiz_id: str) -> HostSnapshot:
        quiz = self._owned_quiz(teacher, quiz_id)
        return self._session.host_snapshot(quiz)

    # --- Student flow ---

    def lookup_join_code(self, join_code: str) -> Quiz:
        return self._lobby.find_live_quiz(join_code)

    def join_quiz(self, student: Profile, join_code: str, nickname: str) -> tuple[QuizSession, bool]:
        return self._lobby.join(student, join_code, nickname)

    def session_view(self, student: Profile, session_id: str) -> SessionView:
        session = self._lobby.get_session(session_id, student.id)
        quiz = self._repository.get_quiz(session.quiz_id)
        if session.is_active:
            question = self._session.displayed_question(quiz, session)
            if question is None:
                session = self._session.complete_session(session)
            else:
                return SessionView(session=session, quiz=quiz, question=question, leaderboard=[])
        leaderboard = self._scoreboard.quiz_leaderboard(quiz.id, SESSION_LEADERBOARD_LIMIT)
        return SessionView(session=session, quiz=quiz, question=None, leaderboard=leaderboard)

    def submit_answer(
        self,
        student: Profile,
        session_id: str,
        selected_option_index: int,
        time_taken: int | None = None,
        question_id: str | None = None,
    ) -> AnswerOutcome:
        session = self._lobby.get_session(session_id, student.id)
        quiz = self._repository.get_quiz(session.quiz_id)
        return self._session.submit_answer(
            quiz,
            session,
            selected_option_index,
            time_taken=time_taken,
            question_id=question_id,
        )

    def record_timeout(self, student: Profile, session_id: str, question_id: str | None = None) -> AnswerOutcome:
        session = self._lobby.get_session(session_id, student.id)
        quiz = self._repository.get_quiz(session.quiz_id)
        return self._session.record_timeout(quiz, session, question_id=question_id)

    def complete_session(self, student: Profile, session_id: str) -> QuizSession:
        session = self._lobby.get_session(session_id, student.id)
        return self._session.complete_session(session)

    def student_results(self, student: Profile) -> list[StudentResult]:
        return self._scoreboard.student_results(student.id)

    # --- Leaderboards ---

    def quiz_leaderboard(self, quiz_id: str, limit: int | None = SESSION_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        quiz = self._repository.get_quiz(quiz_id)
        return self._scoreboard.quiz_leaderboard(quiz.id, limit)

    def global_leaderboard(self, title_filter: str | None = None) -> list[LeaderboardRow]:
        return self._scoreboard.global_leaderboard(title_filter)

    def live_standings(self, teacher: Profile, quiz_id: str, limit: int | None = None) -> list[QuizSession]:
        quiz = self._owned_quiz(teacher, quiz_id)
        return self._scoreboard.live_standings(quiz.id, limit)

    # --- Helpers ---

    def _owned_quiz(self, teacher: Profile, quiz_id: str) -> Quiz:
        self._profiles.require_teacher(teacher)
        quiz = self._repository.get_quiz(quiz_id)
        if quiz.teacher_id != teacher.id:
            # Other teachers' quizzes are reported as missing.
            raise NotFoundError("Quiz not found")
        return quiz

    def _host_snapshot(self, quiz_id: str) -> HostSnapshot:
        return self._session.host_snapshot(self._repository.get_quiz(quiz_id))
