"""Pydantic schemas shared by the API, the engine and the stores."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from interview_coach.config import QUESTION_THRESHOLD


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InterviewStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class MessageRole(str, Enum):
    INTERVIEWER = "interviewer"
    USER = "user"


class Personality(str, Enum):
    FRIENDLY = "friendly"
    FORMAL = "formal"
    STRESS_TEST = "stress-test"


# Records

class User(CamelModel):
    id: str
    name: str
    email: str
    created_at: datetime


class Message(CamelModel):
    id: str
    role: MessageRole
    content: str
    timestamp: datetime


class ChatSession(CamelModel):
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    messages: List[Message] = Field(default_factory=list)

    @computed_field(alias="interviewerMessageCount")
    @property
    def interviewer_message_count(self) -> int:
        return sum(1 for m in self.messages if m.role == MessageRole.INTERVIEWER)

    @computed_field(alias="isFinished")
    @property
    def is_finished(self) -> bool:
        return self.interviewer_message_count >= QUESTION_THRESHOLD


class Interview(CamelModel):
    id: str
    user_id: str
    title: str
    type: str
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    status: InterviewStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    chats: List[ChatSession] = Field(default_factory=list)

    def find_chat(self, chat_id: str) -> Optional[ChatSession]:
        return next((c for c in self.chats if c.id == chat_id), None)


class ReportBody(CamelModel):
    overall_score: int = Field(ge=0, le=100)
    expression: int = Field(ge=0, le=100)
    content: int = Field(ge=0, le=100)
    structure: int = Field(ge=0, le=100)
    language: int = Field(ge=0, le=100)
    strengths: List[str]
    improvements: List[str]
    recommendations: List[str]


class Report(ReportBody):
    id: str
    interview_id: str
    chat_id: Optional[str] = None
    created_at: datetime


# Requests

class RegisterRequest(CamelModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)


class LoginRequest(CamelModel):
    email: str = Field(min_length=3)


class AuthResponse(CamelModel):
    access_token: str
    user: User


class InterviewCreate(CamelModel):
    title: str = Field(min_length=1)
    type: str = Field(min_length=1)
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None


class InterviewUpdate(CamelModel):
    title: Optional[str] = None
    type: Optional[str] = None
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    status: Optional[InterviewStatus] = None


class ChatCreate(CamelModel):
    title: Optional[str] = None


class ChatTitleUpdate(CamelModel):
    title: str = Field(min_length=1)


class MessageCreate(CamelModel):
    role: MessageRole
    content: str = Field(min_length=1)


class ChatStart(CamelModel):
    personality: Personality = Personality.FRIENDLY


class TurnRequest(CamelModel):
    content: str = Field(min_length=1)
    personality: Personality = Personality.FRIENDLY


class TurnResult(CamelModel):
    user_message: Message
    reply: Optional[Message] = None
    report: Optional[Report] = None
    finished: bool = False
