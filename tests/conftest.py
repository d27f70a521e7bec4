import json
from datetime import datetime, timedelta
from typing import List

import pytest

from interview_coach.database import JsonFileTranscriptStore, SqlTranscriptStore
from interview_coach.database.schemas import Message, MessageRole
from interview_coach.interview_service import InterviewService

VALID_REPORT = json.dumps({
    "overallScore": 82,
    "expression": 80,
    "content": 85,
    "structure": 78,
    "language": 84,
    "strengths": ["Clear examples", "Calm delivery", "Good structure"],
    "improvements": ["More metrics", "Shorter answers", "Name trade-offs"],
    "recommendations": ["Practise STAR", "Prepare numbers", "Mock system design"],
})


class FakeCompletionClient:
    """Scripted stand-in for CompletionClient.

    Scripted values that are exceptions are raised instead of returned.
    """

    def __init__(self, opening="Tell me about yourself.", turns=None, report=VALID_REPORT):
        self.opening = opening
        self.turns = list(turns or [])
        self.report = report
        self.turn_calls = []
        self.report_prompts = []

    async def request_opening_question(self, interview_type, personality):
        if isinstance(self.opening, Exception):
            raise self.opening
        return self.opening

    async def request_next_turn(self, history, personality, interview_type, new_user_text):
        self.turn_calls.append((list(history), new_user_text))
        reply = self.turns.pop(0) if self.turns else "What would you do differently next time?"
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def request_report(self, prompt):
        self.report_prompts.append(prompt)
        if isinstance(self.report, Exception):
            raise self.report
        return self.report


def make_messages(questions: int, answers: int = None) -> List[Message]:
    """Alternating interviewer/user transcript starting with the interviewer."""
    answers = questions if answers is None else answers
    start = datetime(2026, 1, 1, 9, 0, 0)
    messages = []
    for i in range(max(questions, answers)):
        if i < questions:
            messages.append(Message(id=f"q{i}", role=MessageRole.INTERVIEWER,
                                    content=f"Question {i + 1}?", timestamp=start + timedelta(minutes=2 * i)))
        if i < answers:
            messages.append(Message(id=f"a{i}", role=MessageRole.USER,
                                    content=f"Answer {i + 1}.", timestamp=start + timedelta(minutes=2 * i + 1)))
    return messages


def seed_chat(service, user_id, interview_id, chat_id, questions):
    """Write ``questions`` interviewer/user exchanges straight into a chat."""
    for i in range(questions):
        service.add_message(user_id, interview_id, chat_id, MessageRole.INTERVIEWER, f"Question {i + 1}?")
        service.add_message(user_id, interview_id, chat_id, MessageRole.USER, f"Answer {i + 1}.")


@pytest.fixture(params=["sql", "json"])
def store(request, tmp_path):
    if request.param == "sql":
        return SqlTranscriptStore(f"sqlite:///{tmp_path / 'coach.db'}")
    return JsonFileTranscriptStore(str(tmp_path / "data.json"))


@pytest.fixture
def completion_client():
    return FakeCompletionClient()


@pytest.fixture
def service(store, completion_client):
    return InterviewService(store, completion_client)


@pytest.fixture
def user_id(service):
    return service.register("Ada Lovelace", "ada@example.com").user.id


@pytest.fixture
def interview(service, user_id):
    return service.create_interview(user_id, title="Backend role", type="technical")


@pytest.fixture
def chat(service, user_id, interview):
    return service.create_chat(user_id, interview.id)
