"""FastAPI server that exposes the teacher, student and admin endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Thread

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
import uvicorn

from quizlive.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION, IMPORT_HELP_TEXT
from quizlive.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, POLL_INTERVAL_SECONDS
from quizlive.constants.quiz_constants import (
    DEFAULT_QUESTION_POINTS,
    DEFAULT_TIME_LIMIT_SECONDS,
    SESSION_LEADERBOARD_LIMIT,
)
from quizlive.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    QuizLiveError,
    QuizValidationError,
)
from quizlive.core.markdown_math_renderer import MATHJAX_SCRIPT_URL, renderer
from quizlive.core.models import (
    LeaderboardRow,
    Profile,
    Question,
    QuestionResults,
    Quiz,
    QuizSession,
    QuizStatus,
)
from quizlive.core.quiz_manager import QuizManager, SessionView
from quizlive.core.services.game_session import AnswerOutcome, HostSnapshot
from quizlive.core.services.profile_directory import Identity
from quizlive.core.services.quiz_repository import QuestionDraft
from quizlive.server.identity import read_identity

_ERROR_STATUS: tuple[tuple[type[QuizLiveError], int], ...] = (
    (QuizValidationError, 422),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ConflictError, 409),
)


class QuestionPayload(BaseModel):
    """Payload schema for one authored question."""

    question_text: str
    options: list[str]
    correct_option_index: int
    time_limit_seconds: int = DEFAULT_TIME_LIMIT_SECONDS
    points: int = DEFAULT_QUESTION_POINTS
    explanation: str | None = None

    def to_draft(self) -> QuestionDraft:
        return QuestionDraft(
            question_text=self.question_text,
            options=list(self.options),
            correct_option_index=self.correct_option_index,
            time_limit_seconds=self.time_limit_seconds,
            points=self.points,
            explanation=self.explanation,
        )


class CreateQuizPayload(BaseModel):
    """Payload schema for the quiz authoring form."""

    title: str
    description: str | None = None
    time_limit: int | None = None
    is_randomized: bool = False
    show_results: bool = True
    questions: list[QuestionPayload] = Field(default_factory=list)


class ImportQuizPayload(BaseModel):
    """Payload schema for creating a quiz from the plain-text format."""

    title: str
    text: str
    description: str | None = None


class StatusPayload(BaseModel):
    status: QuizStatus


class JoinPayload(BaseModel):
    """Payload schema for joining a live quiz."""

    join_code: str
    nickname: str


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    selected_option_index: int
    time_taken: int | None = None
    question_id: str | None = None


class TimeoutPayload(BaseModel):
    question_id: str | None = None


class ProfileUpdatePayload(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.astimezone(timezone.utc).isoformat()


def _profile_payload(profile: Profile) -> dict[str, object]:
    return {
        "id": profile.id,
        "email": profile.email,
        "role": profile.role.value,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
        "is_approved": profile.is_approved,
        "created_at": _iso(profile.created_at),
        "updated_at": _iso(profile.updated_at),
    }


def _quiz_payload(quiz: Quiz) -> dict[str, object]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "teacher_id": quiz.teacher_id,
        "join_code": quiz.join_code,
        "status": quiz.status.value,
        "current_question_index": quiz.current_question_index,
        "results_revealed": quiz.results_revealed,
        "time_limit": quiz.time_limit,
        "total_questions": quiz.total_questions,
        "is_randomized": quiz.is_randomized,
        "show_results": quiz.show_results,
        "question_started_at": _iso(quiz.question_started_at),
        "created_at": _iso(quiz.created_at),
        "updated_at": _iso(quiz.updated_at),
    }


def _question_payload(question: Question, include_answer: bool = True) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": question.id,
        "order_index": question.order_index,
        "question_text": question.question_text,
        "question_html": renderer.render_fragment(question.question_text),
        "options": list(question.options),
        "options_html": [renderer.render_inline(option) for option in question.options],
        "correct_option_index": question.correct_option_index,
        "time_limit_seconds": question.time_limit_seconds,
        "points": question.points,
        "explanation": question.explanation,
    }
    if not include_answer:
        del payload["correct_option_index"]
        del payload["explanation"]
    return payload


def _session_payload(session: QuizSession) -> dict[str, object]:
    return {
        "id": session.id,
        "quiz_id": session.quiz_id,
        "nickname": session.nickname,
        "current_question": session.current_question,
        "total_questions": session.total_questions,
        "score": session.score,
        "percentage": round(session.percentage, 1),
        "time_taken": session.time_taken,
        "is_active": session.is_active,
        "started_at": _iso(session.started_at),
        "completed_at": _iso(session.completed_at),
    }


def _results_payload(results: QuestionResults) -> dict[str, object]:
    return {
        "question_id": results.question.id,
        "option_counts": list(results.option_counts),
        "answer_count": results.answer_count,
        "correct_option_index": results.question.correct_option_index,
        "correct_percentage": round(results.correct_percentage, 1),
    }


def _leaderboard_payload(row: LeaderboardRow) -> dict[str, object]:
    return {
        "rank": row.rank,
        "session_id": row.session_id,
        "quiz_id": row.quiz_id,
        "quiz_title": row.quiz_title,
        "nickname": row.nickname,
        "score": row.score,
        "total_questions": row.total_questions,
        "percentage": round(row.percentage, 1),
        "time_taken": row.time_taken,
        "completed_at": _iso(row.completed_at),
    }


def _host_payload(snapshot: HostSnapshot) -> dict[str, object]:
    question = None
    if snapshot.question is not None:
        question = _question_payload(snapshot.question, include_answer=snapshot.quiz.results_revealed)
    return {
        "quiz": _quiz_payload(snapshot.quiz),
        "question": question,
        "results": _results_payload(snapshot.results) if snapshot.results else None,
        "sessions": [_session_payload(session) for session in snapshot.sessions],
        "active_count": snapshot.active_count,
        "completed_count": snapshot.completed_count,
        "poll_interval_seconds": POLL_INTERVAL_SECONDS,
    }


def _session_view_payload(view: SessionView) -> dict[str, object]:
    quiz = view.quiz
    payload: dict[str, object] = {
        "session": _session_payload(view.session),
        "quiz": {
            "id": quiz.id,
            "title": quiz.title,
            "description": quiz.description,
            "status": quiz.status.value,
            "show_results": quiz.show_results,
        },
        "question": None,
        "leaderboard": [_leaderboard_payload(row) for row in view.leaderboard],
        "poll_interval_seconds": POLL_INTERVAL_SECONDS,
    }
    shown = view.question
    if shown is not None:
        question = shown.question
        payload["question"] = {
            "id": question.id,
            "position": shown.position,
            "question_html": renderer.render_fragment(question.question_text),
            "options": list(shown.options),
            "options_html": [renderer.render_inline(option) for option in shown.options],
            "time_limit_seconds": question.time_limit_seconds,
            "points": question.points,
            "started_at": _iso(shown.started_at),
            "deadline": _iso(shown.deadline),
        }
    return payload


def _outcome_payload(outcome: AnswerOutcome) -> dict[str, object]:
    payload: dict[str, object] = {
        "answer_id": outcome.answer.id,
        "question_id": outcome.answer.question_id,
        "is_correct": outcome.answer.is_correct,
        "points_earned": outcome.answer.points_earned,
        "score": outcome.session.score,
        "completed": outcome.completed,
        "session": _session_payload(outcome.session),
        "answered_at": _iso(outcome.answer.answered_at),
    }
    if outcome.show_results:
        payload["correct_option_index"] = outcome.correct_option_index
        payload["explanation"] = outcome.explanation
    return payload


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def create_api_app(
    quiz_manager: QuizManager,
    leaderboard_limit: int = SESSION_LEADERBOARD_LIMIT,
) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    def current_profile(
        identity: Identity = Depends(read_identity),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> Profile:
        return manager.ensure_profile(identity)

    @app.exception_handler(QuizLiveError)
    async def handle_domain_error(request: Request, exc: QuizLiveError) -> JSONResponse:
        status_code = next((code for kind, code in _ERROR_STATUS if isinstance(exc, kind)), 400)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/health")
    def health(manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return {"status": "ok", "backend": manager.backend_name, "version": APP_VERSION}

    @app.get("/about")
    def about() -> dict[str, object]:
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "license": APP_LICENSE,
            "about": APP_ABOUT_TEXT,
            "import_help": IMPORT_HELP_TEXT,
            "mathjax_script_url": MATHJAX_SCRIPT_URL,
        }

    # --- Profiles ---

    @app.get("/me")
    def get_me(profile: Profile = Depends(current_profile)) -> dict[str, object]:
        return _profile_payload(profile)

    @app.patch("/me")
    def update_me(
        payload: ProfileUpdatePayload,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        updated = manager.update_profile(profile, full_name=payload.full_name, avatar_url=payload.avatar_url)
        return _profile_payload(updated)

    # --- Admin ---

    @app.get("/admin/profiles")
    def list_profiles(
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [_profile_payload(item) for item in manager.list_profiles(profile)]

    @app.get("/admin/teachers")
    def list_teachers(
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [_profile_payload(item) for item in manager.list_teachers(profile)]

    @app.post("/admin/teachers/{teacher_id}/approve")
    def approve_teacher(
        teacher_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _profile_payload(manager.approve_teacher(profile, teacher_id))

    @app.post("/admin/teachers/{teacher_id}/reject")
    def reject_teacher(
        teacher_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _profile_payload(manager.reject_teacher(profile, teacher_id))

    # --- Quiz authoring ---

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: CreateQuizPayload,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz, questions = manager.create_quiz(
            profile,
            payload.title,
            [question.to_draft() for question in payload.questions],
            description=payload.description,
            time_limit=payload.time_limit,
            is_randomized=payload.is_randomized,
            show_results=payload.show_results,
        )
        return {"quiz": _quiz_payload(quiz), "questions": [_question_payload(q) for q in questions]}

    @app.post("/quizzes/import", status_code=201)
    def import_quiz(
        payload: ImportQuizPayload,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz, questions = manager.import_quiz(profile, payload.title, payload.text, description=payload.description)
        return {"quiz": _quiz_payload(quiz), "questions": [_question_payload(q) for q in questions]}

    @app.get("/quizzes")
    def list_quizzes(
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [
            {
                **_quiz_payload(summary.quiz),
                "question_count": summary.question_count,
                "session_count": summary.session_count,
            }
            for summary in manager.list_quizzes(profile)
        ]

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz, questions = manager.get_quiz_with_questions(profile, quiz_id)
        return {"quiz": _quiz_payload(quiz), "questions": [_question_payload(q) for q in questions]}

    @app.delete("/quizzes/{quiz_id}", status_code=204)
    def delete_quiz(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> None:
        manager.delete_quiz(profile, quiz_id)

    @app.patch("/quizzes/{quiz_id}/status")
    def set_quiz_status(
        quiz_id: str,
        payload: StatusPayload,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _quiz_payload(manager.set_quiz_status(profile, quiz_id, payload.status))

    @app.get("/quizzes/{quiz_id}/export", response_class=PlainTextResponse)
    def export_quiz(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> str:
        return manager.export_quiz(profile, quiz_id)

    # --- Live hosting ---

    @app.post("/quizzes/{quiz_id}/start")
    def start_quiz(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _host_payload(manager.start_quiz(profile, quiz_id))

    @app.post("/quizzes/{quiz_id}/reveal")
    def reveal_results(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _results_payload(manager.reveal_results(profile, quiz_id))

    @app.post("/quizzes/{quiz_id}/next")
    def next_question(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _host_payload(manager.next_question(profile, quiz_id))

    @app.post("/quizzes/{quiz_id}/end")
    def end_quiz(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _host_payload(manager.end_quiz(profile, quiz_id))

    @app.get("/quizzes/{quiz_id}/host")
    def host_view(
        quiz_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _host_payload(manager.host_snapshot(profile, quiz_id))

    @app.get("/quizzes/{quiz_id}/standings")
    def live_standings(
        quiz_id: str,
        limit: int | None = None,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [_session_payload(session) for session in manager.live_standings(profile, quiz_id, limit)]

    # --- Student flow ---

    @app.get("/join/{join_code}")
    def lookup_join_code(
        join_code: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        quiz = manager.lookup_join_code(join_code)
        return {
            "id": quiz.id,
            "title": quiz.title,
            "description": quiz.description,
            "total_questions": quiz.total_questions,
        }

    @app.post("/join", status_code=201)
    def join_quiz(
        payload: JoinPayload,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        session, resumed = manager.join_quiz(profile, payload.join_code, payload.nickname)
        return {"session": _session_payload(session), "resumed": resumed}

    @app.get("/sessions/{session_id}")
    def get_session(
        session_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _session_view_payload(manager.session_view(profile, session_id))

    @app.post("/sessions/{session_id}/answers", status_code=201)
    def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        outcome = manager.submit_answer(
            profile,
            session_id,
            payload.selected_option_index,
            time_taken=payload.time_taken,
            question_id=payload.question_id,
        )
        return _outcome_payload(outcome)

    @app.post("/sessions/{session_id}/timeout", status_code=201)
    def record_timeout(
        session_id: str,
        payload: TimeoutPayload,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        outcome = manager.record_timeout(profile, session_id, question_id=payload.question_id)
        return _outcome_payload(outcome)

    @app.post("/sessions/{session_id}/complete")
    def complete_session(
        session_id: str,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        return _session_payload(manager.complete_session(profile, session_id))

    @app.get("/results")
    def student_results(
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [
            {
                **_session_payload(result.session),
                "quiz_title": result.quiz.title,
                "quiz_description": result.quiz.description,
            }
            for result in manager.student_results(profile)
        ]

    # --- Leaderboards ---

    @app.get("/quizzes/{quiz_id}/leaderboard")
    def quiz_leaderboard(
        quiz_id: str,
        limit: int = leaderboard_limit,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [_leaderboard_payload(row) for row in manager.quiz_leaderboard(quiz_id, limit)]

    @app.get("/leaderboard")
    def global_leaderboard(
        title: str | None = None,
        profile: Profile = Depends(current_profile),
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        return [_leaderboard_payload(row) for row in manager.global_leaderboard(title)]

    return app


def start_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    leaderboard_limit: int = SESSION_LEADERBOARD_LIMIT,
    log_level: str = "info",
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(quiz_manager, leaderboard_limit=leaderboard_limit)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return thread
