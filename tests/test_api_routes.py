import pytest
from fastapi.testclient import TestClient

from interview_coach.config import REPORT_READY_SENTINEL
from interview_coach.database import SqlTranscriptStore
from interview_coach.interview_service import InterviewService
from interview_coach.main import create_app
from tests.conftest import FakeCompletionClient

API = "/api/v1"


@pytest.fixture
def fake():
    return FakeCompletionClient(
        opening="Tell me about yourself.",
        turns=["Question 2?", "Question 3?", "Question 4?", "Question 5?", REPORT_READY_SENTINEL],
    )


@pytest.fixture
def client(tmp_path, fake):
    store = SqlTranscriptStore(f"sqlite:///{tmp_path / 'api.db'}")
    app = create_app(InterviewService(store, fake))
    with TestClient(app) as test_client:
        yield test_client


def _register(client, email="ada@example.com"):
    response = client.post(f"{API}/auth/register", json={"name": "Ada", "email": email})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


def _interview(client, headers, **fields):
    body = {"title": "Backend role", "type": "technical", **fields}
    response = client.post(f"{API}/interviews", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()


def _chat(client, headers, interview_id):
    response = client.post(f"{API}/interviews/{interview_id}/chats", headers=headers)
    assert response.status_code == 201
    return response.json()


def test_health_and_root(client):
    assert client.get(f"{API}/health").json()["status"] == "healthy"
    assert client.get("/").json()["health"] == "/api/v1/health"


def test_requests_without_token_are_rejected(client):
    response = client.get(f"{API}/interviews")
    assert response.status_code == 401
    assert client.get(f"{API}/interviews", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_register_login_and_me(client):
    headers = _register(client)
    assert client.post(f"{API}/auth/register", json={"name": "Ada", "email": "ADA@example.com"}).status_code == 409
    assert client.post(f"{API}/auth/login", json={"email": "nobody@example.com"}).status_code == 401

    login = client.post(f"{API}/auth/login", json={"email": "ada@example.com"})
    assert login.status_code == 200
    # Logging in rotates the token.
    assert client.get(f"{API}/auth/me", headers=headers).status_code == 401
    fresh = {"Authorization": f"Bearer {login.json()['accessToken']}"}
    assert client.get(f"{API}/auth/me", headers=fresh).json()["email"] == "ada@example.com"


def test_full_interview_produces_report(client):
    headers = _register(client)
    interview = _interview(client, headers, scheduledDate="2026-11-02", scheduledTime="10:00")
    assert interview["status"] == "scheduled"
    chat = _chat(client, headers, interview["id"])
    assert chat["title"] == "New Session 1"
    chat_url = f"{API}/interviews/{interview['id']}/chats/{chat['id']}"

    opening = client.post(f"{chat_url}/start", json={"personality": "formal"}, headers=headers)
    assert opening.status_code == 201
    assert opening.json()["role"] == "interviewer"

    for n in range(4):
        turn = client.post(f"{chat_url}/turn", json={"content": f"Answer {n + 1}"}, headers=headers)
        assert turn.status_code == 200
        assert turn.json()["reply"]["content"] == f"Question {n + 2}?"
        assert not turn.json()["finished"]

    current = client.get(f"{API}/interviews/{interview['id']}", headers=headers).json()
    assert current["status"] == "in-progress"
    assert current["chats"][0]["interviewerMessageCount"] == 5
    assert current["chats"][0]["isFinished"] is True

    final = client.post(f"{chat_url}/turn", json={"content": "Answer 5"}, headers=headers).json()
    assert final["finished"] is True
    assert final["report"]["overallScore"] == 82

    done = client.get(f"{API}/interviews/{interview['id']}", headers=headers).json()
    assert done["status"] == "completed"
    assert done["completedAt"] is not None

    report = client.get(f"{API}/interviews/{interview['id']}/report",
                        params={"chatId": chat["id"]}, headers=headers)
    assert report.status_code == 200
    assert report.json()["id"] == final["report"]["id"]
    assert report.json()["chatId"] == chat["id"]


def test_report_requires_enough_conversation(client):
    headers = _register(client)
    interview = _interview(client, headers)
    chat = _chat(client, headers, interview["id"])
    base = f"{API}/interviews/{interview['id']}"

    assert client.get(f"{base}/report", headers=headers).status_code == 404
    assert client.post(f"{base}/report", headers=headers).status_code == 422

    client.post(f"{base}/chats/{chat['id']}/messages",
                json={"role": "interviewer", "content": "Why this role?"}, headers=headers)
    response = client.post(f"{base}/report", params={"chatId": chat["id"]}, headers=headers)
    assert response.status_code == 422


def test_regenerating_keeps_earlier_reports(client):
    headers = _register(client)
    interview = _interview(client, headers)
    chat = _chat(client, headers, interview["id"])
    base = f"{API}/interviews/{interview['id']}"
    for n in range(5):
        client.post(f"{base}/chats/{chat['id']}/messages",
                    json={"role": "interviewer", "content": f"Q{n}?"}, headers=headers)
        client.post(f"{base}/chats/{chat['id']}/messages",
                    json={"role": "user", "content": f"A{n}."}, headers=headers)

    first = client.post(f"{base}/report", params={"chatId": chat["id"]}, headers=headers).json()
    second = client.post(f"{base}/report", params={"chatId": chat["id"]}, headers=headers).json()

    reports = client.get(f"{base}/reports", headers=headers).json()
    assert [r["id"] for r in reports] == [second["id"], first["id"]]
    latest = client.get(f"{base}/report", params={"chatId": chat["id"]}, headers=headers).json()
    assert latest["id"] == second["id"]

    # Without chatId the first chat with messages is scored as an interview-level report.
    overall = client.post(f"{base}/report", headers=headers).json()
    assert overall["chatId"] is None
    assert client.get(f"{base}/report", headers=headers).json()["id"] == overall["id"]


def test_end_chat_scores_and_completes(client, fake):
    fake.report = "not a report"
    headers = _register(client)
    interview = _interview(client, headers)
    chat = _chat(client, headers, interview["id"])
    base = f"{API}/interviews/{interview['id']}"
    for n in range(5):
        client.post(f"{base}/chats/{chat['id']}/messages",
                    json={"role": "interviewer", "content": f"Q{n}?"}, headers=headers)

    report = client.post(f"{base}/chats/{chat['id']}/end", headers=headers)
    assert report.status_code == 200
    assert report.json()["overallScore"] == 75
    assert len(report.json()["strengths"]) == 3
    assert client.get(base, headers=headers).json()["status"] == "completed"


def test_status_cannot_move_backwards(client):
    headers = _register(client)
    interview = _interview(client, headers)
    url = f"{API}/interviews/{interview['id']}"

    assert client.patch(url, json={"status": "completed"}, headers=headers).json()["status"] == "completed"
    response = client.patch(url, json={"status": "in-progress"}, headers=headers)
    assert response.status_code == 409
    renamed = client.patch(url, json={"title": "Renamed"}, headers=headers).json()
    assert renamed["title"] == "Renamed"
    assert renamed["status"] == "completed"


def test_other_users_cannot_see_interviews(client):
    ada = _register(client)
    grace = _register(client, email="grace@example.com")
    interview = _interview(client, ada)
    chat = _chat(client, ada, interview["id"])

    assert client.get(f"{API}/interviews/{interview['id']}", headers=grace).status_code == 404
    assert client.get(f"{API}/interviews", headers=grace).json() == []
    response = client.post(f"{API}/interviews/{interview['id']}/chats/{chat['id']}/messages",
                           json={"role": "user", "content": "hi"}, headers=grace)
    assert response.status_code == 404


def test_chat_rename_and_validation(client):
    headers = _register(client)
    interview = _interview(client, headers)
    chat = _chat(client, headers, interview["id"])
    url = f"{API}/interviews/{interview['id']}/chats/{chat['id']}"

    assert client.patch(url, json={"title": "  Warm-up  "}, headers=headers).json()["title"] == "Warm-up"
    assert client.patch(url, json={"title": ""}, headers=headers).status_code == 422
    bad_role = client.post(f"{url}/messages", json={"role": "robot", "content": "x"}, headers=headers)
    assert bad_role.status_code == 422


def test_generated_report_is_returned_unchanged(client):
    headers = _register(client)
    interview = _interview(client, headers, type="Technical")
    assert interview["status"] == "in-progress"
    chat = _chat(client, headers, interview["id"])
    base = f"{API}/interviews/{interview['id']}"

    for n in range(10):
        role = "interviewer" if n % 2 == 0 else "user"
        response = client.post(f"{base}/chats/{chat['id']}/messages",
                               json={"role": role, "content": f"Message {n + 1}"}, headers=headers)
        assert response.status_code == 201

    generated = client.post(f"{base}/report", params={"chatId": chat["id"]}, headers=headers)
    assert generated.status_code == 201
    body = generated.json()
    for field in ("overallScore", "expression", "content", "structure", "language"):
        assert 0 <= body[field] <= 100
    for field in ("strengths", "improvements", "recommendations"):
        assert len(body[field]) >= 3

    fetched = client.get(f"{base}/report", params={"chatId": chat["id"]}, headers=headers)
    assert fetched.json() == body
