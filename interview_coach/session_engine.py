"""Interview session state machine.

Interview status is stored (scheduled -> in-progress -> completed). Whether a
chat is finished is derived from its interviewer message count, never stored.
"""
from typing import List, Optional, Tuple

import structlog

from interview_coach.config import (
    DEFAULT_OPENING_QUESTION,
    EARLY_READY_FOLLOW_UP,
    REPORT_READY_SENTINEL,
    TURN_FAILURE_MESSAGE,
)
from interview_coach.database.schemas import (
    ChatSession,
    Interview,
    InterviewStatus,
    Message,
    MessageRole,
    Personality,
    Report,
    TurnResult,
)
from interview_coach.database.store import TranscriptStore, new_id, utcnow
from interview_coach.errors import InvalidStateError, NotFoundError, UpstreamUnavailableError
from interview_coach.lifecycle import initial_status
from interview_coach.report_generator import ReportGenerator

logger = structlog.get_logger()

DEFAULT_CHAT_TITLE = "New Session {n}"


def default_chat_title(existing: List[ChatSession]) -> str:
    """Number chats by how many earlier ones were actually used.

    Empty chats do not advance the counter, so abandoning an empty chat and
    starting another reuses its number.
    """
    used = sum(1 for chat in existing if chat.messages)
    return DEFAULT_CHAT_TITLE.format(n=used + 1)


def is_report_ready(text: str) -> bool:
    return text.strip() == REPORT_READY_SENTINEL


class SessionEngine:
    def __init__(self, store: TranscriptStore, completion_client, report_generator: ReportGenerator):
        self.store = store
        self.completion_client = completion_client
        self.report_generator = report_generator

    # Interviews

    def require_interview(self, user_id: str, interview_id: str) -> Interview:
        interview = self.store.get_interview(user_id, interview_id)
        if interview is None:
            raise NotFoundError("Interview not found")
        return interview

    def require_chat(self, user_id: str, interview_id: str, chat_id: str) -> Tuple[Interview, ChatSession]:
        interview = self.require_interview(user_id, interview_id)
        chat = interview.find_chat(chat_id)
        if chat is None:
            raise NotFoundError("Chat session not found")
        return interview, chat

    def create_interview(
        self,
        user_id: str,
        title: str,
        type: str,
        scheduled_date: Optional[str] = None,
        scheduled_time: Optional[str] = None,
    ) -> Interview:
        interview = Interview(
            id=new_id(),
            user_id=user_id,
            title=title,
            type=type,
            scheduled_date=scheduled_date or None,
            scheduled_time=scheduled_time or None,
            status=initial_status(scheduled_date),
            created_at=utcnow(),
        )
        interview = self.store.add_interview(interview)
        logger.info("Interview created", user_id=user_id, interview_id=interview.id,
                    status=interview.status.value)
        return interview

    def update_interview(self, user_id: str, interview_id: str, **changes) -> Interview:
        """Edit fields; ``status`` may only move forward.

        Title and type cannot be cleared; an explicit None for a schedule
        field removes it.
        """
        changes = {
            k: v for k, v in changes.items()
            if v is not None or k in ("scheduled_date", "scheduled_time")
        }
        interview = self.store.update_interview(user_id, interview_id, changes)
        logger.info("Interview updated", interview_id=interview_id,
                    fields=sorted(changes), status=interview.status.value)
        return interview

    def complete_interview(self, user_id: str, interview_id: str) -> Interview:
        return self.update_interview(user_id, interview_id, status=InterviewStatus.COMPLETED)

    # Chats and messages

    def create_chat_session(self, user_id: str, interview_id: str, title: Optional[str] = None) -> ChatSession:
        title = (title or "").strip()
        if title:
            chat = self.store.add_chat(user_id, interview_id, lambda existing: title)
        else:
            chat = self.store.add_chat(user_id, interview_id, default_chat_title)
        logger.info("Chat session created", interview_id=interview_id, chat_id=chat.id, title=chat.title)
        return chat

    def update_chat_title(self, user_id: str, interview_id: str, chat_id: str, title: str) -> ChatSession:
        return self.store.rename_chat(user_id, interview_id, chat_id, title)

    def send_message(
        self, user_id: str, interview_id: str, chat_id: str, role: MessageRole, content: str
    ) -> Message:
        """Append one message; a scheduled interview moves to in-progress."""
        message = self.store.append_message(user_id, interview_id, chat_id, role, content)
        logger.info("Message appended", interview_id=interview_id, chat_id=chat_id,
                    role=MessageRole(role).value, message_id=message.id)
        return message

    async def record_first_question(
        self,
        user_id: str,
        interview_id: str,
        chat_id: str,
        personality: Personality = Personality.FRIENDLY,
    ) -> Message:
        interview, chat = self.require_chat(user_id, interview_id, chat_id)
        if chat.messages:
            raise InvalidStateError("Chat session has already started")

        try:
            question = await self.completion_client.request_opening_question(interview.type, personality)
        except Exception as e:
            logger.warning("Opening question unavailable, using default", error=str(e))
            question = ""
        question = (question or "").strip() or DEFAULT_OPENING_QUESTION

        return self.send_message(user_id, interview_id, chat_id, MessageRole.INTERVIEWER, question)

    async def take_turn(
        self,
        user_id: str,
        interview_id: str,
        chat_id: str,
        content: str,
        personality: Personality = Personality.FRIENDLY,
    ) -> TurnResult:
        """Record the user's answer, then produce the interviewer's reply or a report."""
        interview, chat = self.require_chat(user_id, interview_id, chat_id)
        history = list(chat.messages)

        # The answer is durable before the completion request goes out.
        user_message = self.send_message(user_id, interview_id, chat_id, MessageRole.USER, content)

        try:
            reply_text = await self.completion_client.request_next_turn(
                history, personality, interview.type, content
            )
            if not reply_text or not reply_text.strip():
                raise UpstreamUnavailableError("Empty interviewer reply")
        except Exception as e:
            logger.error("Interview turn failed", interview_id=interview_id, chat_id=chat_id, error=str(e))
            reply = self.send_message(user_id, interview_id, chat_id, MessageRole.INTERVIEWER, TURN_FAILURE_MESSAGE)
            return TurnResult(user_message=user_message, reply=reply)

        if is_report_ready(reply_text):
            transcript = history + [user_message]
            if chat.is_finished:
                report = await self.generate_report_for(user_id, interview, chat_id, transcript)
                self.complete_interview(user_id, interview_id)
                return TurnResult(user_message=user_message, report=report, finished=True)
            logger.info("Interviewer signalled readiness too early", chat_id=chat_id,
                        interviewer_messages=chat.interviewer_message_count)
            reply_text = EARLY_READY_FOLLOW_UP

        reply = self.send_message(user_id, interview_id, chat_id, MessageRole.INTERVIEWER, reply_text.strip())
        return TurnResult(user_message=user_message, reply=reply)

    # Reports

    async def generate_report_for(
        self,
        user_id: str,
        interview: Interview,
        chat_id: Optional[str],
        messages: List[Message],
    ) -> Report:
        """Score ``messages`` and persist a new report; existing reports are kept."""
        body = await self.report_generator.generate(messages, interview.type)
        report = Report(
            id=new_id(),
            interview_id=interview.id,
            chat_id=chat_id,
            created_at=utcnow(),
            **body.model_dump(),
        )
        report = self.store.add_report(user_id, report)
        logger.info("Report saved", interview_id=interview.id, chat_id=chat_id,
                    report_id=report.id, overall_score=report.overall_score)
        return report
