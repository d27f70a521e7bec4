"""Session/Report API: the operation surface used by the HTTP layer.

Every operation takes the caller's resolved user id. Interviews owned by
another user are indistinguishable from missing ones (NotFoundError).
"""
from typing import List, Optional

import structlog

from interview_coach.database.schemas import (
    AuthResponse,
    ChatSession,
    Interview,
    Message,
    MessageRole,
    Personality,
    Report,
    TurnResult,
    User,
)
from interview_coach.database.store import TranscriptStore
from interview_coach.errors import AuthenticationError, InsufficientDataError, NotFoundError
from interview_coach.report_generator import ReportGenerator
from interview_coach.session_engine import SessionEngine

logger = structlog.get_logger()


class InterviewService:
    def __init__(self, store: TranscriptStore, completion_client):
        self.store = store
        self.engine = SessionEngine(store, completion_client, ReportGenerator(completion_client))

    # Identity

    def register(self, name: str, email: str) -> AuthResponse:
        user = self.store.create_user(name=name, email=email.strip().lower())
        token = self.store.issue_token(user.id)
        logger.info("User registered", user_id=user.id)
        return AuthResponse(access_token=token, user=user)

    def login(self, email: str) -> AuthResponse:
        user = self.store.find_user_by_email(email.strip().lower())
        if user is None:
            raise AuthenticationError("Invalid credentials")
        token = self.store.issue_token(user.id)
        logger.info("User logged in", user_id=user.id)
        return AuthResponse(access_token=token, user=user)

    def authenticate(self, token: Optional[str]) -> str:
        user_id = self.store.resolve_token(token) if token else None
        if user_id is None:
            raise AuthenticationError("Invalid or missing token")
        return user_id

    def get_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # Interviews

    def get_interviews(self, user_id: str) -> List[Interview]:
        return self.store.list_interviews(user_id)

    def get_interview(self, user_id: str, interview_id: str) -> Interview:
        return self.engine.require_interview(user_id, interview_id)

    def create_interview(
        self,
        user_id: str,
        title: str,
        type: str,
        scheduled_date: Optional[str] = None,
        scheduled_time: Optional[str] = None,
    ) -> Interview:
        return self.engine.create_interview(user_id, title, type, scheduled_date, scheduled_time)

    def update_interview(self, user_id: str, interview_id: str, **changes) -> Interview:
        return self.engine.update_interview(user_id, interview_id, **changes)

    # Chats

    def create_chat(self, user_id: str, interview_id: str, title: Optional[str] = None) -> ChatSession:
        return self.engine.create_chat_session(user_id, interview_id, title)

    def update_chat_title(self, user_id: str, interview_id: str, chat_id: str, title: str) -> ChatSession:
        return self.engine.update_chat_title(user_id, interview_id, chat_id, title)

    def add_message(
        self, user_id: str, interview_id: str, chat_id: str, role: MessageRole, content: str
    ) -> Message:
        return self.engine.send_message(user_id, interview_id, chat_id, role, content)

    async def start_chat(
        self, user_id: str, interview_id: str, chat_id: str, personality: Personality = Personality.FRIENDLY
    ) -> Message:
        return await self.engine.record_first_question(user_id, interview_id, chat_id, personality)

    async def take_turn(
        self,
        user_id: str,
        interview_id: str,
        chat_id: str,
        content: str,
        personality: Personality = Personality.FRIENDLY,
    ) -> TurnResult:
        return await self.engine.take_turn(user_id, interview_id, chat_id, content, personality)

    async def end_chat(self, user_id: str, interview_id: str, chat_id: str) -> Report:
        """Score the chat and complete its interview."""
        report = await self.generate_report(user_id, interview_id, chat_id)
        self.engine.complete_interview(user_id, interview_id)
        return report

    # Reports

    def get_report(self, user_id: str, interview_id: str, chat_id: Optional[str] = None) -> Optional[Report]:
        """Most recent report for the chat, or the latest interview-level one when no chat is given."""
        self.engine.require_interview(user_id, interview_id)
        for report in self.store.list_reports(user_id, interview_id):
            matches = report.chat_id == chat_id if chat_id else not report.chat_id
            if matches:
                return report
        return None

    def get_reports_for_interview(self, user_id: str, interview_id: str) -> List[Report]:
        self.engine.require_interview(user_id, interview_id)
        return self.store.list_reports(user_id, interview_id)

    async def generate_report(self, user_id: str, interview_id: str, chat_id: Optional[str] = None) -> Report:
        """Generate and persist a new report.

        Without ``chat_id`` the first chat (stored order) that has any messages
        is scored, and the report is saved as an interview-level report.
        """
        interview = self.engine.require_interview(user_id, interview_id)
        if chat_id:
            chat = interview.find_chat(chat_id)
            if chat is None:
                raise NotFoundError("Chat session not found")
        else:
            chat = next((c for c in interview.chats if c.messages), None)
            if chat is None:
                raise InsufficientDataError(
                    "Not enough conversation to generate a report. Please start the interview first."
                )
        if not chat.messages:
            raise InsufficientDataError(
                "Not enough conversation to generate a report. Please continue the interview."
            )
        return await self.engine.generate_report_for(user_id, interview, chat_id or None, chat.messages)
