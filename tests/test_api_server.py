from __future__ import annotations

from fastapi.testclient import TestClient
import pytest

from quizlive.server.api_server import create_api_app

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin", "X-User-Email": "admin@example.com"}
TEACHER = {"X-User-Id": "teacher-1", "X-User-Role": "teacher", "X-User-Name": "Ms Frizzle"}
STUDENT = {"X-User-Id": "student-1", "X-User-Role": "student"}

QUIZ_PAYLOAD = {
    "title": "Arithmetic",
    "description": "Warm-up",
    "questions": [
        {"question_text": "What is **1 + 1**?", "options": ["2", "3", "4", "5"], "correct_option_index": 0},
        {
            "question_text": "What is $2 + 2$?",
            "options": ["3", "4", "5", "6"],
            "correct_option_index": 1,
            "time_limit_seconds": 15,
            "points": 2,
            "explanation": "Basic addition.",
        },
    ],
}


@pytest.fixture
def client(manager):
    return TestClient(create_api_app(manager))


@pytest.fixture
def approved_teacher(client):
    client.get("/me", headers=ADMIN)
    client.get("/me", headers=TEACHER)
    response = client.post("/admin/teachers/teacher-1/approve", headers=ADMIN)
    assert response.status_code == 200
    return TEACHER


@pytest.fixture
def live_quiz(client, approved_teacher):
    created = client.post("/quizzes", json=QUIZ_PAYLOAD, headers=approved_teacher).json()
    quiz_id = created["quiz"]["id"]
    response = client.post(f"/quizzes/{quiz_id}/start", headers=approved_teacher)
    assert response.status_code == 200
    return created


def test_health_reports_backend(client, manager):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["backend"] == manager.backend_name


def test_identity_headers_required(client):
    assert client.get("/me").status_code == 401
    assert client.get("/me", headers={"X-User-Id": "u1", "X-User-Role": "wizard"}).status_code == 400


def test_profile_endpoints(client):
    me = client.get("/me", headers=TEACHER).json()
    assert me["role"] == "teacher"
    assert me["is_approved"] is False
    assert me["full_name"] == "Ms Frizzle"

    updated = client.patch("/me", json={"full_name": "Valerie Frizzle"}, headers=TEACHER).json()
    assert updated["full_name"] == "Valerie Frizzle"


def test_admin_routes_are_guarded(client):
    client.get("/me", headers=TEACHER)
    assert client.get("/admin/teachers", headers=STUDENT).status_code == 403

    teachers = client.get("/admin/teachers", headers=ADMIN).json()
    assert [t["id"] for t in teachers] == ["teacher-1"]
    rejected = client.post("/admin/teachers/teacher-1/reject", headers=ADMIN).json()
    assert rejected["is_approved"] is False
    assert client.post("/admin/teachers/nobody/approve", headers=ADMIN).status_code == 404


def test_unapproved_teacher_cannot_create(client):
    response = client.post("/quizzes", json=QUIZ_PAYLOAD, headers=TEACHER)
    assert response.status_code == 403
    assert "approval" in response.json()["detail"]


def test_quiz_authoring_routes(client, approved_teacher):
    response = client.post("/quizzes", json=QUIZ_PAYLOAD, headers=approved_teacher)
    assert response.status_code == 201
    quiz = response.json()["quiz"]
    assert quiz["status"] == "draft"
    assert len(quiz["join_code"]) == 6

    listing = client.get("/quizzes", headers=approved_teacher).json()
    assert [(q["id"], q["question_count"]) for q in listing] == [(quiz["id"], 2)]

    detail = client.get(f"/quizzes/{quiz['id']}", headers=approved_teacher).json()
    assert "<strong>1 + 1</strong>" in detail["questions"][0]["question_html"]
    assert "$2 + 2$" in detail["questions"][1]["question_html"]

    published = client.patch(f"/quizzes/{quiz['id']}/status", json={"status": "published"}, headers=approved_teacher)
    assert published.json()["status"] == "published"
    bad_status = client.patch(f"/quizzes/{quiz['id']}/status", json={"status": "archived"}, headers=approved_teacher)
    assert bad_status.status_code == 422

    exported = client.get(f"/quizzes/{quiz['id']}/export", headers=approved_teacher)
    assert exported.text.startswith("Q: What is **1 + 1**?")

    assert client.delete(f"/quizzes/{quiz['id']}", headers=approved_teacher).status_code == 204
    assert client.get(f"/quizzes/{quiz['id']}", headers=approved_teacher).status_code == 404


def test_validation_errors_map_to_422(client, approved_teacher):
    payload = {"title": "Broken", "questions": [{"question_text": "Q", "options": ["a", "b", "c", "d"], "correct_option_index": 0, "time_limit_seconds": 2}]}
    response = client.post("/quizzes", json=payload, headers=approved_teacher)
    assert response.status_code == 422
    assert "between 5-300 seconds" in response.json()["detail"]


def test_import_route(client, approved_teacher):
    text = "Q: Sky colour?\nA: Blue\nB: Green\nC: Red\nD: Grey\nCORRECT: A\n"
    response = client.post("/quizzes/import", json={"title": "Nature", "text": text}, headers=approved_teacher)
    assert response.status_code == 201
    assert response.json()["questions"][0]["options"] == ["Blue", "Green", "Red", "Grey"]

    broken = client.post("/quizzes/import", json={"title": "Nature", "text": "Q: only"}, headers=approved_teacher)
    assert broken.status_code == 422


def test_student_plays_a_live_quiz(client, approved_teacher, live_quiz):
    quiz = live_quiz["quiz"]
    lookup = client.get(f"/join/{quiz['join_code'].lower()}", headers=STUDENT)
    assert lookup.json()["title"] == "Arithmetic"

    joined = client.post("/join", json={"join_code": quiz["join_code"], "nickname": "Sam"}, headers=STUDENT)
    assert joined.status_code == 201
    session_id = joined.json()["session"]["id"]

    view = client.get(f"/sessions/{session_id}", headers=STUDENT).json()
    question = view["question"]
    assert question["position"] == 0
    assert "correct_option_index" not in question
    assert view["poll_interval_seconds"] == 2

    answer = client.post(
        f"/sessions/{session_id}/answers",
        json={"selected_option_index": 0, "time_taken": 4, "question_id": question["id"]},
        headers=STUDENT,
    ).json()
    assert answer["is_correct"] is True
    assert answer["correct_option_index"] == 0
    assert answer["score"] == 1

    stale = client.post(
        f"/sessions/{session_id}/answers",
        json={"selected_option_index": 0, "question_id": question["id"]},
        headers=STUDENT,
    )
    assert stale.status_code == 409

    timeout = client.post(f"/sessions/{session_id}/timeout", json={}, headers=STUDENT).json()
    assert timeout["completed"] is True
    assert timeout["session"]["time_taken"] == 19

    finished = client.get(f"/sessions/{session_id}", headers=STUDENT).json()
    assert finished["question"] is None
    assert finished["leaderboard"][0]["nickname"] == "Sam"

    results = client.get("/results", headers=STUDENT).json()
    assert results[0]["quiz_title"] == "Arithmetic"
    assert results[0]["score"] == 1


def test_host_routes(client, approved_teacher, live_quiz):
    quiz_id = live_quiz["quiz"]["id"]
    join_code = live_quiz["quiz"]["join_code"]
    session_id = client.post("/join", json={"join_code": join_code, "nickname": "Sam"}, headers=STUDENT).json()["session"]["id"]
    client.post(f"/sessions/{session_id}/answers", json={"selected_option_index": 1}, headers=STUDENT)

    hidden = client.get(f"/quizzes/{quiz_id}/host", headers=approved_teacher).json()
    assert hidden["question"]["question_text"] == "What is **1 + 1**?"
    assert "correct_option_index" not in hidden["question"]
    assert "explanation" not in hidden["question"]

    revealed = client.post(f"/quizzes/{quiz_id}/reveal", headers=approved_teacher).json()
    assert revealed["option_counts"] == [0, 1, 0, 0]
    assert revealed["correct_percentage"] == 0

    host = client.get(f"/quizzes/{quiz_id}/host", headers=approved_teacher).json()
    assert host["quiz"]["results_revealed"] is True
    assert host["question"]["correct_option_index"] == 0
    assert host["active_count"] == 1

    standings = client.get(f"/quizzes/{quiz_id}/standings", headers=approved_teacher).json()
    assert [s["nickname"] for s in standings] == ["Sam"]

    advanced = client.post(f"/quizzes/{quiz_id}/next", headers=approved_teacher).json()
    assert advanced["quiz"]["current_question_index"] == 1
    assert advanced["results"] is None

    ended = client.post(f"/quizzes/{quiz_id}/end", headers=approved_teacher).json()
    assert ended["quiz"]["status"] == "completed"
    assert ended["completed_count"] == 1
    assert client.post(f"/quizzes/{quiz_id}/end", headers=approved_teacher).status_code == 409

    board = client.get(f"/quizzes/{quiz_id}/leaderboard", headers=STUDENT).json()
    assert [(row["rank"], row["nickname"]) for row in board] == [(1, "Sam")]
    assert client.get("/leaderboard", params={"title": "arith"}, headers=STUDENT).json()[0]["quiz_title"] == "Arithmetic"
    assert client.get("/leaderboard", params={"title": "history"}, headers=STUDENT).json() == []


def test_students_cannot_host(client, live_quiz):
    quiz_id = live_quiz["quiz"]["id"]
    assert client.post(f"/quizzes/{quiz_id}/next", headers=STUDENT).status_code == 403


def test_join_unknown_code(client):
    response = client.post("/join", json={"join_code": "ZZZZZZ", "nickname": "Sam"}, headers=STUDENT)
    assert response.status_code == 404
    assert response.json()["detail"] == "Quiz not found or not active"


def test_about_describes_import_format(client):
    body = client.get("/about").json()
    assert body["name"] == "QuizLive"
    assert "CORRECT:" in body["import_help"]
    assert "POINTS:" in body["import_help"]
    assert "EXPLANATION:" in body["import_help"]
