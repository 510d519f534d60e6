"""Relational store backend built on SQLAlchemy.

Works against any SQLAlchemy URL: a hosted Postgres service
(``postgresql+psycopg://...``), SQL Server (``mssql+pyodbc://...``) or a local
SQLite file. Every public method runs in its own transaction, so concurrent
hosts and students polling the same rows observe last-write-wins updates.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy import create_engine, delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from quizlive.core.errors import ConflictError
from quizlive.core.models import (
    Profile,
    Question,
    Quiz,
    QuizSession,
    QuizStatus,
    Role,
    SubmittedAnswer,
    utcnow,
)
from quizlive.storage.base import QuizStore, check_answerable
from quizlive.storage.tables import (
    AnswerRow,
    Base,
    ProfileRow,
    QuestionRow,
    QuizRow,
    SessionRow,
)

logger = logging.getLogger(__name__)

_ENUM_FIELDS = {"role", "status"}


def create_sql_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url.startswith("sqlite"):
        kwargs: dict[str, object] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


class SqlStore(QuizStore):
    """Store backed by the relational tables in :mod:`quizlive.storage.tables`."""

    backend_name = "sql"

    def __init__(self, engine: Engine, create_tables: bool = True) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(engine)
            logger.info("Ensured quiz tables exist on %s", engine.url.render_as_string(hide_password=True))

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlStore":
        return cls(create_sql_engine(database_url, echo=echo))

    def close(self) -> None:
        self._engine.dispose()

    # --- Profiles ---

    def add_profile(self, profile: Profile) -> Profile:
        row = ProfileRow(
            id=profile.id,
            email=profile.email,
            full_name=profile.full_name,
            role=profile.role.value,
            avatar_url=profile.avatar_url,
            is_approved=profile.is_approved,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )
        try:
            with self._session_factory.begin() as db:
                db.add(row)
        except IntegrityError as exc:
            raise ConflictError(f"Profile {profile.id} already exists.") from exc
        return _to_profile(row)

    def get_profile(self, profile_id: str) -> Profile | None:
        with self._session_factory() as db:
            row = db.get(ProfileRow, profile_id)
            return _to_profile(row) if row is not None else None

    def update_profile(self, profile_id: str, **fields: object) -> Profile | None:
        with self._session_factory.begin() as db:
            row = db.get(ProfileRow, profile_id)
            if row is None:
                return None
            _assign(row, fields)
            row.updated_at = utcnow()
            return _to_profile(row)

    def list_profiles(self, role: str | None = None) -> list[Profile]:
        stmt = select(ProfileRow).order_by(ProfileRow.created_at.desc())
        if role is not None:
            stmt = stmt.where(ProfileRow.role == role)
        with self._session_factory() as db:
            return [_to_profile(row) for row in db.scalars(stmt)]

    # --- Quizzes and questions ---

    def add_quiz(self, quiz: Quiz, questions: list[Question]) -> Quiz:
        row = QuizRow(
            id=quiz.id,
            title=quiz.title,
            description=quiz.description,
            teacher_id=quiz.teacher_id,
            join_code=quiz.join_code,
            status=quiz.status.value,
            current_question_index=quiz.current_question_index,
            live_started_at=quiz.live_started_at,
            question_started_at=quiz.question_started_at,
            results_revealed=quiz.results_revealed,
            time_limit=quiz.time_limit,
            total_questions=quiz.total_questions,
            is_randomized=quiz.is_randomized,
            show_results=quiz.show_results,
            created_at=quiz.created_at,
            updated_at=quiz.updated_at,
        )
        question_rows = [
            QuestionRow(
                id=q.id,
                quiz_id=quiz.id,
                question_text=q.question_text,
                options=list(q.options),
                correct_option_index=q.correct_option_index,
                points=q.points,
                time_limit_seconds=q.time_limit_seconds,
                explanation=q.explanation,
                order_index=q.order_index,
                created_at=q.created_at,
            )
            for q in questions
        ]
        try:
            with self._session_factory.begin() as db:
                db.add(row)
                db.add_all(question_rows)
        except IntegrityError as exc:
            raise ConflictError(f"Join code {quiz.join_code} is already in use.") from exc
        return _to_quiz(row)

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        with self._session_factory() as db:
            row = db.get(QuizRow, quiz_id)
            return _to_quiz(row) if row is not None else None

    def get_quiz_by_code(self, join_code: str) -> Quiz | None:
        with self._session_factory() as db:
            row = db.scalars(select(QuizRow).where(QuizRow.join_code == join_code)).first()
            return _to_quiz(row) if row is not None else None

    def list_quizzes(self, teacher_id: str) -> list[Quiz]:
        stmt = (
            select(QuizRow)
            .where(QuizRow.teacher_id == teacher_id)
            .order_by(QuizRow.created_at.desc())
        )
        with self._session_factory() as db:
            return [_to_quiz(row) for row in db.scalars(stmt)]

    def update_quiz(self, quiz_id: str, **fields: object) -> Quiz | None:
        with self._session_factory.begin() as db:
            row = db.get(QuizRow, quiz_id)
            if row is None:
                return None
            _assign(row, fields)
            row.updated_at = utcnow()
            return _to_quiz(row)

    def delete_quiz(self, quiz_id: str) -> bool:
        session_ids = select(SessionRow.id).where(SessionRow.quiz_id == quiz_id)
        with self._session_factory.begin() as db:
            db.execute(delete(AnswerRow).where(AnswerRow.session_id.in_(session_ids)))
            db.execute(delete(SessionRow).where(SessionRow.quiz_id == quiz_id))
            db.execute(delete(QuestionRow).where(QuestionRow.quiz_id == quiz_id))
            result = db.execute(delete(QuizRow).where(QuizRow.id == quiz_id))
            return result.rowcount > 0

    def list_questions(self, quiz_id: str) -> list[Question]:
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.quiz_id == quiz_id)
            .order_by(QuestionRow.order_index)
        )
        with self._session_factory() as db:
            return [_to_question(row) for row in db.scalars(stmt)]

    # --- Sessions ---

    def add_session(self, session: QuizSession) -> QuizSession:
        row = SessionRow(
            id=session.id,
            quiz_id=session.quiz_id,
            student_id=session.student_id,
            nickname=session.nickname,
            score=session.score,
            total_questions=session.total_questions,
            current_question=session.current_question,
            is_active=session.is_active,
            time_taken=session.time_taken,
            started_at=session.started_at,
            completed_at=session.completed_at,
            updated_at=session.updated_at,
        )
        with self._session_factory.begin() as db:
            db.add(row)
        return _to_session(row)

    def get_session(self, session_id: str) -> QuizSession | None:
        with self._session_factory() as db:
            row = db.get(SessionRow, session_id)
            return _to_session(row) if row is not None else None

    def find_active_session(self, quiz_id: str, student_id: str) -> QuizSession | None:
        stmt = select(SessionRow).where(
            SessionRow.quiz_id == quiz_id,
            SessionRow.student_id == student_id,
            SessionRow.is_active.is_(True),
        )
        with self._session_factory() as db:
            row = db.scalars(stmt).first()
            return _to_session(row) if row is not None else None

    def list_sessions(self, quiz_id: str) -> list[QuizSession]:
        stmt = (
            select(SessionRow)
            .where(SessionRow.quiz_id == quiz_id)
            .order_by(SessionRow.score.desc(), SessionRow.started_at)
        )
        with self._session_factory() as db:
            return [_to_session(row) for row in db.scalars(stmt)]

    def list_student_sessions(self, student_id: str, completed_only: bool = False) -> list[QuizSession]:
        stmt = select(SessionRow).where(SessionRow.student_id == student_id)
        if completed_only:
            stmt = stmt.where(SessionRow.completed_at.is_not(None))
        stmt = stmt.order_by(func.coalesce(SessionRow.completed_at, SessionRow.started_at).desc())
        with self._session_factory() as db:
            return [_to_session(row) for row in db.scalars(stmt)]

    def count_sessions(self, quiz_id: str) -> int:
        stmt = select(func.count()).select_from(SessionRow).where(SessionRow.quiz_id == quiz_id)
        with self._session_factory() as db:
            return int(db.scalar(stmt) or 0)

    def update_session(self, session_id: str, **fields: object) -> QuizSession | None:
        with self._session_factory.begin() as db:
            row = db.get(SessionRow, session_id)
            if row is None:
                return None
            _assign(row, fields)
            row.updated_at = utcnow()
            return _to_session(row)

    def move_active_sessions(self, quiz_id: str, question_index: int) -> int:
        stmt = (
            update(SessionRow)
            .where(
                SessionRow.quiz_id == quiz_id,
                SessionRow.is_active.is_(True),
                SessionRow.current_question < question_index,
            )
            .values(current_question=question_index, updated_at=utcnow())
        )
        with self._session_factory.begin() as db:
            return db.execute(stmt).rowcount

    def close_active_sessions(self, quiz_id: str, completed_at: datetime) -> int:
        stmt = (
            update(SessionRow)
            .where(SessionRow.quiz_id == quiz_id, SessionRow.is_active.is_(True))
            .values(is_active=False, completed_at=completed_at, updated_at=completed_at)
        )
        with self._session_factory.begin() as db:
            return db.execute(stmt).rowcount

    # --- Answers ---

    def record_answer(self, answer: SubmittedAnswer, position: int, finished: bool = False) -> QuizSession:
        values: dict[str, object] = {
            "score": SessionRow.score + answer.points_earned,
            "time_taken": SessionRow.time_taken + answer.time_taken,
            "current_question": position + 1,
            "updated_at": utcnow(),
        }
        if finished:
            values["is_active"] = False
            values["completed_at"] = answer.answered_at
        # Only matches a session that is still active at ``position``.
        advance = (
            update(SessionRow)
            .where(
                SessionRow.id == answer.session_id,
                SessionRow.is_active.is_(True),
                SessionRow.current_question == position,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            with self._session_factory.begin() as db:
                if db.execute(advance).rowcount == 0:
                    session_row = db.get(SessionRow, answer.session_id)
                    if session_row is None:
                        raise ConflictError(f"Session {answer.session_id} no longer exists.")
                    check_answerable(session_row.is_active, session_row.current_question, position)
                    raise ConflictError("This question has already been answered.")
                db.add(
                    AnswerRow(
                        id=answer.id,
                        session_id=answer.session_id,
                        question_id=answer.question_id,
                        selected_option_index=answer.selected_option_index,
                        is_correct=answer.is_correct,
                        points_earned=answer.points_earned,
                        time_taken=answer.time_taken,
                        answered_at=answer.answered_at,
                    )
                )
                db.flush()
                session_row = db.get(SessionRow, answer.session_id, populate_existing=True)
                return _to_session(session_row)
        except IntegrityError as exc:
            raise ConflictError("This question has already been answered.") from exc

    def list_answers(self, session_id: str) -> list[SubmittedAnswer]:
        stmt = (
            select(AnswerRow)
            .where(AnswerRow.session_id == session_id)
            .order_by(AnswerRow.answered_at)
        )
        with self._session_factory() as db:
            return [_to_answer(row) for row in db.scalars(stmt)]

    def list_question_answers(self, question_id: str) -> list[SubmittedAnswer]:
        stmt = (
            select(AnswerRow)
            .where(AnswerRow.question_id == question_id)
            .order_by(AnswerRow.answered_at)
        )
        with self._session_factory() as db:
            return [_to_answer(row) for row in db.scalars(stmt)]

    # --- Leaderboard view ---

    def completed_sessions(self, quiz_id: str | None = None) -> list[tuple[QuizSession, Quiz]]:
        stmt = (
            select(SessionRow, QuizRow)
            .join(QuizRow, SessionRow.quiz_id == QuizRow.id)
            .where(SessionRow.completed_at.is_not(None))
        )
        if quiz_id is not None:
            stmt = stmt.where(SessionRow.quiz_id == quiz_id)
        with self._session_factory() as db:
            return [(_to_session(s), _to_quiz(q)) for s, q in db.execute(stmt)]


def _assign(row: object, fields: dict[str, object]) -> None:
    for name, value in fields.items():
        if not hasattr(row, name):
            raise AttributeError(f"{type(row).__name__} has no column '{name}'")
        if name in _ENUM_FIELDS and hasattr(value, "value"):
            value = value.value
        setattr(row, name, value)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_profile(row: ProfileRow) -> Profile:
    return Profile(
        id=row.id,
        email=row.email,
        role=Role(row.role),
        full_name=row.full_name,
        avatar_url=row.avatar_url,
        is_approved=row.is_approved,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _to_quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        title=row.title,
        description=row.description,
        teacher_id=row.teacher_id,
        join_code=row.join_code,
        status=QuizStatus(row.status),
        current_question_index=row.current_question_index,
        live_started_at=_aware(row.live_started_at),
        question_started_at=_aware(row.question_started_at),
        results_revealed=row.results_revealed,
        time_limit=row.time_limit,
        total_questions=row.total_questions,
        is_randomized=row.is_randomized,
        show_results=row.show_results,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _to_question(row: QuestionRow) -> Question:
    return Question(
        id=row.id,
        quiz_id=row.quiz_id,
        question_text=row.question_text,
        options=list(row.options),
        correct_option_index=row.correct_option_index,
        order_index=row.order_index,
        time_limit_seconds=row.time_limit_seconds,
        points=row.points,
        explanation=row.explanation,
        created_at=_aware(row.created_at),
    )


def _to_session(row: SessionRow) -> QuizSession:
    return QuizSession(
        id=row.id,
        quiz_id=row.quiz_id,
        student_id=row.student_id,
        nickname=row.nickname,
        total_questions=row.total_questions,
        current_question=row.current_question,
        score=row.score,
        is_active=row.is_active,
        time_taken=row.time_taken,
        started_at=_aware(row.started_at),
        completed_at=_aware(row.completed_at),
        updated_at=_aware(row.updated_at),
    )


def _to_answer(row: AnswerRow) -> SubmittedAnswer:
    return SubmittedAnswer(
        id=row.id,
        session_id=row.session_id,
        question_id=row.question_id,
        selected_option_index=row.selected_option_index,
        is_correct=row.is_correct,
        points_earned=row.points_earned,
        time_taken=row.time_taken,
        answered_at=_aware(row.answered_at),
    )
