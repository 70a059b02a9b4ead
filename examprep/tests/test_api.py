"""
API Integration Tests

Drives the exam endpoints through the FastAPI application with a SQLite
database and an in-memory question bank:
1. The normal create / start / answer / complete flow
2. Session handling and ownership
3. Mapping of typed failures to HTTP statuses
4. Rate limiting
"""

import pytest
from fastapi.testclient import TestClient

from examprep.common.auth.jwt import JWTConfig, create_access_token
from examprep.common.rate_limiter import MemoryRateLimitStorage, RateLimiter
from examprep.config import Settings
from examprep.main import create_app

SECRET = "api-test-secret"


def make_settings(tmp_path, **overrides):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        JWT_SECRET_KEY=SECRET,
        REDIS_URL=None,
        **overrides,
    )


@pytest.fixture
def client(tmp_path, question_bank):
    app = create_app(
        make_settings(tmp_path),
        question_repository=question_bank,
        rate_limiter=RateLimiter(MemoryRateLimitStorage()),
    )
    with TestClient(app) as client:
        yield client


def bearer(user_id):
    token = create_access_token(user_id, config=JWTConfig(secret_key=SECRET))
    return {"Authorization": f"Bearer {token}"}


def create_exam(client, headers=None, **payload):
    payload.setdefault("provider", "aws")
    payload.setdefault("certification", "saa-c03")
    payload.setdefault("question_count", 3)
    return client.post("/api/exams", json=payload, headers=headers or {})


def correct_answer(question):
    answers = question["correct_answers"]
    return answers if question["is_multi_select"] else answers[0]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_exam_flow(client):
    response = create_exam(client)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    exam = body["data"]
    assert exam["status"] == "not_started"
    assert len(exam["questions"]) == 3
    exam_id = exam["id"]

    response = client.post(f"/api/exams/{exam_id}/start")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "in_progress"

    for question in exam["questions"]:
        response = client.post(
            f"/api/exams/{exam_id}/answer",
            json={"question_id": question["question_id"], "answer": correct_answer(question)},
        )
        assert response.status_code == 200
        assert response.json()["data"]["is_correct"] is True

    response = client.post(f"/api/exams/{exam_id}/complete")
    assert response.status_code == 200
    results = response.json()["data"]["results"]
    assert results["score"] == 100
    assert results["passed"] is True
    assert "question_results" not in results

    response = client.get(f"/api/exams/{exam_id}/results")
    assert response.json()["data"]["correct_answers"] == 3

    response = client.get(f"/api/exams/{exam_id}/analysis")
    assert response.json()["data"]["overall_performance"] == "Passed"

    response = client.get(f"/api/exams/{exam_id}/review")
    assert len(response.json()["data"]["questions"]) == 3

    response = client.get(f"/api/exams/{exam_id}/statistics")
    assert response.json()["data"]["performance"]["correct_answers"] == 3


def test_session_header_is_issued_and_reused(client):
    response = create_exam(client)
    session_id = response.headers["X-Session-ID"]
    exam_id = response.json()["data"]["id"]
    assert session_id

    fresh = TestClient(client.app)
    response = fresh.get(f"/api/exams/{exam_id}", headers={"X-Session-ID": session_id})
    assert response.status_code == 200
    assert response.headers["X-Session-ID"] == session_id


def test_other_session_cannot_see_exam(client):
    exam_id = create_exam(client).json()["data"]["id"]

    response = client.get(f"/api/exams/{exam_id}", headers={"X-Session-ID": "someone-else-123"})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"

    response = client.delete(f"/api/exams/{exam_id}", headers={"X-Session-ID": "someone-else-123"})
    assert response.status_code == 404

    missing = client.get("/api/exams/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["message"] == response.json()["message"].replace(exam_id, "does-not-exist")


def test_user_exams_are_separate_from_anonymous(client):
    exam_id = create_exam(client, headers=bearer("user-1")).json()["data"]["id"]

    assert client.get(f"/api/exams/{exam_id}", headers=bearer("user-1")).status_code == 200
    assert client.get(f"/api/exams/{exam_id}", headers=bearer("user-2")).status_code == 404
    assert client.get(f"/api/exams/{exam_id}").status_code == 404


def test_invalid_transition_maps_to_409(client):
    exam_id = create_exam(client).json()["data"]["id"]

    response = client.post(f"/api/exams/{exam_id}/complete")

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "invalid_transition"
    assert body["details"]["reason"] == "not_started"
    assert body["details"]["exam_id"] == exam_id


def test_results_before_completion_conflict(client):
    exam_id = create_exam(client).json()["data"]["id"]
    response = client.get(f"/api/exams/{exam_id}/results")
    assert response.status_code == 409
    assert response.json()["details"]["reason"] == "not_completed"


def test_validation_error_maps_to_400(client):
    response = create_exam(client, question_count=0)
    assert response.status_code == 400
    assert "question_count" in response.json()["details"]["errors"]

    exam = create_exam(client).json()["data"]
    client.post(f"/api/exams/{exam['id']}/start")
    response = client.post(
        f"/api/exams/{exam['id']}/answer",
        json={"question_id": exam["questions"][0]["question_id"], "answer": 42},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_failed"


def test_malformed_request_body(client):
    exam_id = create_exam(client).json()["data"]["id"]
    response = client.post(f"/api/exams/{exam_id}/answer", json={"answer": 1})
    assert response.status_code == 422
    assert response.json()["code"] == "request_validation"


def test_insufficient_questions_maps_to_422(client):
    response = create_exam(client, category="Machine Learning")
    assert response.status_code == 422
    assert response.json()["code"] == "insufficient_data"


def test_invalid_bearer_token_is_rejected(client):
    response = create_exam(client, headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["code"] == "invalid_token"


def test_failed_questions_exam_requires_user(client):
    response = client.post("/api/exams/failed-questions", json={})
    assert response.status_code == 401

    response = client.post("/api/exams/failed-questions", json={}, headers=bearer("user-1"))
    assert response.status_code == 422


def test_list_and_delete(client):
    first = create_exam(client).json()["data"]["id"]
    second = create_exam(client).json()["data"]["id"]
    client.post(f"/api/exams/{second}/start")

    listing = client.get("/api/exams", params={"limit": 1}).json()["data"]
    assert listing["pagination"] == {"total": 2, "limit": 1, "offset": 0, "has_more": True}
    assert listing["exams"][0]["id"] == second

    in_progress = client.get("/api/exams", params={"status": "in_progress"}).json()["data"]
    assert [e["id"] for e in in_progress["exams"]] == [second]

    assert client.delete(f"/api/exams/{first}").status_code == 200
    assert client.get(f"/api/exams/{first}").status_code == 404
    assert client.get("/api/exams", params={"limit": 0}).status_code == 400


def test_answer_hides_correctness_without_explanations(client):
    exam = create_exam(client, mode="timed").json()["data"]
    assert all("correct_answers" not in q for q in exam["questions"])
    client.post(f"/api/exams/{exam['id']}/start")
    question = exam["questions"][0]

    response = client.post(
        f"/api/exams/{exam['id']}/answer",
        json={"question_id": question["question_id"], "answer": [0] if question["is_multi_select"] else 0},
    )

    data = response.json()["data"]
    assert "is_correct" not in data
    assert data["progress"]["answered_questions"] == 1


def test_pause_resume_and_progress(client):
    exam_id = create_exam(client).json()["data"]["id"]
    client.post(f"/api/exams/{exam_id}/start")

    assert client.post(f"/api/exams/{exam_id}/pause").json()["data"]["status"] == "paused"
    assert client.post(f"/api/exams/{exam_id}/pause").status_code == 409
    assert client.post(f"/api/exams/{exam_id}/resume").json()["data"]["status"] == "in_progress"

    progress = client.get(f"/api/exams/{exam_id}/progress").json()["data"]
    assert progress["status"] == "in_progress"
    assert progress["total_questions"] == 3

    assert client.post(f"/api/exams/{exam_id}/cancel").json()["data"]["status"] == "cancelled"


def test_create_rate_limit(tmp_path, question_bank):
    app = create_app(
        make_settings(tmp_path, CREATE_RATE_LIMIT=2),
        question_repository=question_bank,
        rate_limiter=RateLimiter(MemoryRateLimitStorage()),
    )
    with TestClient(app) as client:
        assert create_exam(client).status_code == 201
        assert create_exam(client).status_code == 201
        response = create_exam(client)
        other_session = create_exam(client, headers={"X-Session-ID": "another-session-42"})

    assert response.status_code == 429
    assert other_session.status_code == 201
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert "Retry-After" in response.headers
