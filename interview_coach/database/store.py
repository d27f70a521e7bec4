"""Transcript store interface and the SQLAlchemy-backed implementation.

The store is the single consistency boundary for an interview. Each public
method is one atomic operation: callers never read a whole interview, mutate
it in memory and write it back.
"""
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

import structlog
from sqlalchemy.orm import Session

from interview_coach.database import models, schemas
from interview_coach.database.db import create_session_factory
from interview_coach.errors import ConflictError, NotFoundError
from interview_coach.lifecycle import advance_on_activity, resolve_transition

logger = structlog.get_logger()

TitleFactory = Callable[[List[schemas.ChatSession]], str]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form both backends persist."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """Current time, never earlier than the previous message in the chat."""
    now = utcnow()
    if previous is not None and previous > now:
        return previous
    return now


class TranscriptStore(ABC):
    """Storage collaborator for users, interviews, chats, messages and reports.

    Every interview-scoped method takes the owning ``user_id``; an interview
    owned by someone else behaves exactly like a missing one.
    """

    # Users and tokens

    @abstractmethod
    def create_user(self, name: str, email: str) -> schemas.User:
        """Raises ConflictError when the email is taken."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[schemas.User]:
        ...

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[schemas.User]:
        ...

    @abstractmethod
    def issue_token(self, user_id: str) -> str:
        """Create or rotate the user's bearer token."""

    @abstractmethod
    def resolve_token(self, token: str) -> Optional[str]:
        ...

    # Interviews

    @abstractmethod
    def list_interviews(self, user_id: str) -> List[schemas.Interview]:
        """Newest first."""

    @abstractmethod
    def get_interview(self, user_id: str, interview_id: str) -> Optional[schemas.Interview]:
        ...

    @abstractmethod
    def add_interview(self, interview: schemas.Interview) -> schemas.Interview:
        ...

    @abstractmethod
    def update_interview(self, user_id: str, interview_id: str, changes: Dict[str, Any]) -> schemas.Interview:
        """Apply field changes; a ``status`` change must follow the lifecycle."""

    # Chats and messages

    @abstractmethod
    def add_chat(self, user_id: str, interview_id: str, title_factory: TitleFactory) -> schemas.ChatSession:
        """Append a chat whose title is computed from the existing chats."""

    @abstractmethod
    def rename_chat(self, user_id: str, interview_id: str, chat_id: str, title: str) -> schemas.ChatSession:
        ...

    @abstractmethod
    def append_message(
        self, user_id: str, interview_id: str, chat_id: str, role: schemas.MessageRole, content: str
    ) -> schemas.Message:
        """Append one message, bump the chat's updatedAt and move a scheduled
        interview to in-progress, all atomically."""

    # Reports

    @abstractmethod
    def add_report(self, user_id: str, report: schemas.Report) -> schemas.Report:
        ...

    @abstractmethod
    def list_reports(self, user_id: str, interview_id: str) -> List[schemas.Report]:
        """Newest first; reports created at the same instant keep reverse insertion order."""


class SqlTranscriptStore(TranscriptStore):
    def __init__(self, database_url: str):
        self._session_factory = create_session_factory(database_url)
        logger.info("SQL transcript store ready", database_url=database_url)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # Conversion

    @staticmethod
    def _user(row: models.User) -> schemas.User:
        return schemas.User(id=row.user_id, name=row.name, email=row.email, created_at=row.created_at)

    @staticmethod
    def _message(row: models.Message) -> schemas.Message:
        return schemas.Message(
            id=row.message_id,
            role=schemas.MessageRole(row.role),
            content=row.content,
            timestamp=row.timestamp,
        )

    def _chat(self, row: models.ChatSession) -> schemas.ChatSession:
        return schemas.ChatSession(
            id=row.chat_id,
            title=row.title,
            created_at=row.created_at,
            updated_at=row.updated_at,
            messages=[self._message(m) for m in row.messages],
        )

    def _interview(self, row: models.Interview) -> schemas.Interview:
        return schemas.Interview(
            id=row.interview_id,
            user_id=row.user_id,
            title=row.title,
            type=row.type,
            scheduled_date=row.scheduled_date,
            scheduled_time=row.scheduled_time,
            status=schemas.InterviewStatus(row.status),
            created_at=row.created_at,
            completed_at=row.completed_at,
            chats=[self._chat(c) for c in row.chats],
        )

    @staticmethod
    def _report(row: models.Report) -> schemas.Report:
        return schemas.Report(
            id=row.report_id,
            interview_id=row.interview_id,
            chat_id=row.chat_id,
            overall_score=row.overall_score,
            expression=row.expression,
            content=row.content,
            structure=row.structure,
            language=row.language,
            strengths=list(row.strengths),
            improvements=list(row.improvements),
            recommendations=list(row.recommendations),
            created_at=row.created_at,
        )

    # Lookups

    @staticmethod
    def _interview_row(db: Session, user_id: str, interview_id: str) -> models.Interview:
        row = db.query(models.Interview).filter(
            models.Interview.interview_id == interview_id,
            models.Interview.user_id == user_id,
        ).first()
        if row is None:
            raise NotFoundError("Interview not found")
        return row

    def _chat_row(self, db: Session, user_id: str, interview_id: str, chat_id: str) -> models.ChatSession:
        interview = self._interview_row(db, user_id, interview_id)
        row = db.query(models.ChatSession).filter(
            models.ChatSession.interview_pk == interview.id,
            models.ChatSession.chat_id == chat_id,
        ).first()
        if row is None:
            raise NotFoundError("Chat session not found")
        return row

    # Users and tokens

    def create_user(self, name: str, email: str) -> schemas.User:
        with self._session() as db:
            if db.query(models.User).filter(models.User.email == email).first():
                raise ConflictError("Email already registered")
            row = models.User(user_id=new_id(), name=name, email=email, created_at=utcnow())
            db.add(row)
            db.flush()
            return self._user(row)

    def get_user(self, user_id: str) -> Optional[schemas.User]:
        with self._session() as db:
            row = db.query(models.User).filter(models.User.user_id == user_id).first()
            return self._user(row) if row else None

    def find_user_by_email(self, email: str) -> Optional[schemas.User]:
        with self._session() as db:
            row = db.query(models.User).filter(models.User.email == email).first()
            return self._user(row) if row else None

    def issue_token(self, user_id: str) -> str:
        token = uuid.uuid4().hex + uuid.uuid4().hex
        with self._session() as db:
            row = db.query(models.Token).filter(models.Token.user_id == user_id).first()
            if row is None:
                db.add(models.Token(user_id=user_id, token=token))
            else:
                row.token = token
        return token

    def resolve_token(self, token: str) -> Optional[str]:
        with self._session() as db:
            row = db.query(models.Token).filter(models.Token.token == token).first()
            return row.user_id if row else None

    # Interviews

    def list_interviews(self, user_id: str) -> List[schemas.Interview]:
        with self._session() as db:
            rows = db.query(models.Interview).filter(
                models.Interview.user_id == user_id
            ).order_by(models.Interview.created_at.desc(), models.Interview.id.desc()).all()
            return [self._interview(r) for r in rows]

    def get_interview(self, user_id: str, interview_id: str) -> Optional[schemas.Interview]:
        with self._session() as db:
            row = db.query(models.Interview).filter(
                models.Interview.interview_id == interview_id,
                models.Interview.user_id == user_id,
            ).first()
            return self._interview(row) if row else None

    def add_interview(self, interview: schemas.Interview) -> schemas.Interview:
        with self._session() as db:
            row = models.Interview(
                interview_id=interview.id,
                user_id=interview.user_id,
                title=interview.title,
                type=interview.type,
                scheduled_date=interview.scheduled_date,
                scheduled_time=interview.scheduled_time,
                status=interview.status.value,
                created_at=interview.created_at,
                completed_at=interview.completed_at,
            )
            db.add(row)
            db.flush()
            return self._interview(row)

    def update_interview(self, user_id: str, interview_id: str, changes: Dict[str, Any]) -> schemas.Interview:
        with self._session() as db:
            row = self._interview_row(db, user_id, interview_id)
            for field in ("title", "type", "scheduled_date", "scheduled_time"):
                if field in changes:
                    setattr(row, field, changes[field])
            if changes.get("status") is not None:
                status, changed = resolve_transition(row.status, changes["status"])
                if changed:
                    row.status = status.value
                    if status == schemas.InterviewStatus.COMPLETED:
                        row.completed_at = utcnow()
            db.flush()
            return self._interview(row)

    # Chats and messages

    def add_chat(self, user_id: str, interview_id: str, title_factory: TitleFactory) -> schemas.ChatSession:
        with self._session() as db:
            interview = self._interview_row(db, user_id, interview_id)
            existing = [self._chat(c) for c in interview.chats]
            now = utcnow()
            row = models.ChatSession(
                chat_id=new_id(),
                interview_pk=interview.id,
                title=title_factory(existing),
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            db.flush()
            return self._chat(row)

    def rename_chat(self, user_id: str, interview_id: str, chat_id: str, title: str) -> schemas.ChatSession:
        with self._session() as db:
            row = self._chat_row(db, user_id, interview_id, chat_id)
            row.title = title
            db.flush()
            return self._chat(row)

    def append_message(
        self, user_id: str, interview_id: str, chat_id: str, role: schemas.MessageRole, content: str
    ) -> schemas.Message:
        with self._session() as db:
            chat = self._chat_row(db, user_id, interview_id, chat_id)
            last = chat.messages[-1].timestamp if chat.messages else None
            row = models.Message(
                message_id=new_id(),
                chat_pk=chat.id,
                role=schemas.MessageRole(role).value,
                content=content,
                timestamp=next_timestamp(last),
            )
            db.add(row)
            chat.updated_at = row.timestamp
            status, changed = advance_on_activity(chat.interview.status)
            if changed:
                chat.interview.status = status.value
            db.flush()
            return self._message(row)

    # Reports

    def add_report(self, user_id: str, report: schemas.Report) -> schemas.Report:
        with self._session() as db:
            self._interview_row(db, user_id, report.interview_id)
            row = models.Report(
                report_id=report.id,
                user_id=user_id,
                interview_id=report.interview_id,
                chat_id=report.chat_id,
                overall_score=report.overall_score,
                expression=report.expression,
                content=report.content,
                structure=report.structure,
                language=report.language,
                strengths=list(report.strengths),
                improvements=list(report.improvements),
                recommendations=list(report.recommendations),
                created_at=report.created_at,
            )
            db.add(row)
            db.flush()
            return self._report(row)

    def list_reports(self, user_id: str, interview_id: str) -> List[schemas.Report]:
        with self._session() as db:
            rows = db.query(models.Report).filter(
                models.Report.user_id == user_id,
                models.Report.interview_id == interview_id,
            ).order_by(models.Report.created_at.desc(), models.Report.id.desc()).all()
            return [self._report(r) for r in rows]
