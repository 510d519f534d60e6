"""Service for leaderboards and per-student results."""

from __future__ import annotations

from dataclasses import dataclass

from quizlive.constants.quiz_constants import GLOBAL_LEADERBOARD_LIMIT, SESSION_LEADERBOARD_LIMIT
from quizlive.core.models import LeaderboardRow, Quiz, QuizSession
from quizlive.storage.base import QuizStore


@dataclass(slots=True)
class StudentResult:
    """A completed session with the quiz it belongs to."""

    session: QuizSession
    quiz: Quiz


class Scoreboard:
    """Read-only aggregation over completed sessions."""

    def __init__(self, store: QuizStore) -> None:
        self._store = store

    def quiz_leaderboard(self, quiz_id: str, limit: int | None = SESSION_LEADERBOARD_LIMIT) -> list[LeaderboardRow]:
        """Return completed sessions ranked by score, then by total time.

        Sessions with the same score and time share a rank; the next distinct
        entry skips ahead (1, 2, 2, 4).
        """
        pairs = self._store.completed_sessions(quiz_id)
        pairs.sort(
            key=lambda pair: (
                -pair[0].score,
                pair[0].time_taken,
                pair[0].completed_at or pair[0].started_at,
            )
        )
        ranked: list[LeaderboardRow] = []
        previous_key: tuple[int, int] | None = None
        rank = 0
        for position, (session, quiz) in enumerate(pairs, start=1):
            key = (session.score, session.time_taken)
            if key != previous_key:
                rank = position
                previous_key = key
            ranked.append(_to_row(rank, session, quiz))
        return ranked[:limit] if limit is not None else ranked

    def global_leaderboard(
        self,
        title_filter: str | None = None,
        limit: int = GLOBAL_LEADERBOARD_LIMIT,
    ) -> list[LeaderboardRow]:
        """Most recent completed sessions across every quiz, newest first."""
        pairs = sorted(
            self._store.completed_sessions(),
            key=lambda pair: pair[0].completed_at or pair[0].started_at,
            reverse=True,
        )[:limit]
        needle = (title_filter or "").strip().lower()
        if needle:
            pairs = [pair for pair in pairs if needle in pair[1].title.lower()]
        return [_to_row(position, session, quiz) for position, (session, quiz) in enumerate(pairs, start=1)]

    def live_standings(self, quiz_id: str, limit: int | None = None) -> list[QuizSession]:
        """Every session of the quiz, highest score first."""
        sessions = self._store.list_sessions(quiz_id)
        return sessions[:limit] if limit is not None else sessions

    def student_results(self, student_id: str) -> list[StudentResult]:
        results = []
        quizzes: dict[str, Quiz | None] = {}
        for session in self._store.list_student_sessions(student_id, completed_only=True):
            if session.quiz_id not in quizzes:
                quizzes[session.quiz_id] = self._store.get_quiz(session.quiz_id)
            quiz = quizzes[session.quiz_id]
            if quiz is not None:
                results.append(StudentResult(session=session, quiz=quiz))
        return results


def _to_row(rank: int, session: QuizSession, quiz: Quiz) -> LeaderboardRow:
    return LeaderboardRow(
        rank=rank,
        session_id=session.id,
        quiz_id=quiz.id,
        quiz_title=quiz.title,
        nickname=session.nickname or "Anonymous",
        score=session.score,
        total_questions=session.total_questions,
        time_taken=session.time_taken,
        completed_at=session.completed_at,
    )
