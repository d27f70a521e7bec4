"""Flat-file transcript store.

One JSON document holds top-level ``users``, ``projects`` (interviews),
``sessions`` (chats), ``messages`` and ``reports`` arrays plus a ``tokens``
map of user id to token. Records reference each other by id fields. Every
read-modify-write holds a process-wide lock and replaces the file atomically.
"""
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import structlog

from interview_coach.database import schemas
from interview_coach.database.store import (
    TitleFactory,
    TranscriptStore,
    new_id,
    next_timestamp,
    utcnow,
)
from interview_coach.errors import ConflictError, NotFoundError
from interview_coach.lifecycle import advance_on_activity, resolve_transition

logger = structlog.get_logger()

EMPTY_DOCUMENT = {
    "users": [],
    "projects": [],
    "sessions": [],
    "messages": [],
    "reports": [],
    "tokens": {},
}


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(
        mode="json",
        by_alias=True,
        exclude={"chats", "messages", "interviewer_message_count", "is_finished"},
    )


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# One lock per file, shared by every store instance in the process.
_FILE_LOCKS: Dict[str, threading.Lock] = {}
_FILE_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = os.path.realpath(str(path))
    with _FILE_LOCKS_GUARD:
        lock = _FILE_LOCKS.get(key)
        if lock is None:
            lock = _FILE_LOCKS[key] = threading.Lock()
        return lock


class JsonFileTranscriptStore(TranscriptStore):
    def __init__(self, path: str):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = _lock_for(self._path)
        with self._lock:
            if not self._path.exists():
                self._write(json.loads(json.dumps(EMPTY_DOCUMENT)))
        logger.info("JSON transcript store ready", path=str(self._path))

    # File access

    def _read(self) -> Dict[str, Any]:
        with open(self._path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, default in EMPTY_DOCUMENT.items():
            data.setdefault(key, type(default)())
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    @contextmanager
    def _transaction(self) -> Iterator[Dict[str, Any]]:
        with self._lock:
            data = self._read()
            yield data
            self._write(data)

    def _snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self._read()

    # Conversion

    @staticmethod
    def _message(record: Dict[str, Any]) -> schemas.Message:
        return schemas.Message(
            id=record["id"],
            role=schemas.MessageRole(record["role"]),
            content=record["content"],
            timestamp=_parse_time(record["timestamp"]),
        )

    def _chat(self, data: Dict[str, Any], record: Dict[str, Any]) -> schemas.ChatSession:
        messages = [
            self._message(m) for m in data["messages"]
            if m["sessionId"] == record["id"] and m["projectId"] == record["projectId"]
        ]
        return schemas.ChatSession(
            id=record["id"],
            title=record["title"],
            created_at=_parse_time(record["createdAt"]),
            updated_at=_parse_time(record["updatedAt"]),
            messages=messages,
        )

    def _interview(self, data: Dict[str, Any], record: Dict[str, Any]) -> schemas.Interview:
        chats = [self._chat(data, s) for s in data["sessions"] if s["projectId"] == record["id"]]
        return schemas.Interview.model_validate({**record, "chats": chats})

    # Lookups

    @staticmethod
    def _project(data: Dict[str, Any], user_id: str, interview_id: str) -> Dict[str, Any]:
        for record in data["projects"]:
            if record["id"] == interview_id and record["userId"] == user_id:
                return record
        raise NotFoundError("Interview not found")

    def _session_record(self, data: Dict[str, Any], user_id: str, interview_id: str, chat_id: str) -> Dict[str, Any]:
        self._project(data, user_id, interview_id)
        for record in data["sessions"]:
            if record["id"] == chat_id and record["projectId"] == interview_id:
                return record
        raise NotFoundError("Chat session not found")

    # Users and tokens

    def create_user(self, name: str, email: str) -> schemas.User:
        with self._transaction() as data:
            if any(u["email"] == email for u in data["users"]):
                raise ConflictError("Email already registered")
            user = schemas.User(id=new_id(), name=name, email=email, created_at=utcnow())
            data["users"].append(_dump(user))
            return user

    def get_user(self, user_id: str) -> Optional[schemas.User]:
        data = self._snapshot()
        record = next((u for u in data["users"] if u["id"] == user_id), None)
        return schemas.User.model_validate(record) if record else None

    def find_user_by_email(self, email: str) -> Optional[schemas.User]:
        data = self._snapshot()
        record = next((u for u in data["users"] if u["email"] == email), None)
        return schemas.User.model_validate(record) if record else None

    def issue_token(self, user_id: str) -> str:
        token = new_id() + new_id()
        with self._transaction() as data:
            data["tokens"][user_id] = token
        return token

    def resolve_token(self, token: str) -> Optional[str]:
        data = self._snapshot()
        return next((uid for uid, t in data["tokens"].items() if t == token), None)

    # Interviews

    def list_interviews(self, user_id: str) -> List[schemas.Interview]:
        data = self._snapshot()
        owned = [(i, p) for i, p in enumerate(data["projects"]) if p["userId"] == user_id]
        owned.sort(key=lambda pair: (pair[1]["createdAt"], pair[0]), reverse=True)
        return [self._interview(data, p) for _, p in owned]

    def get_interview(self, user_id: str, interview_id: str) -> Optional[schemas.Interview]:
        data = self._snapshot()
        try:
            return self._interview(data, self._project(data, user_id, interview_id))
        except NotFoundError:
            return None

    def add_interview(self, interview: schemas.Interview) -> schemas.Interview:
        with self._transaction() as data:
            data["projects"].append(_dump(interview))
            return interview.model_copy(update={"chats": []})

    def update_interview(self, user_id: str, interview_id: str, changes: Dict[str, Any]) -> schemas.Interview:
        with self._transaction() as data:
            record = self._project(data, user_id, interview_id)
            for field, key in (
                ("title", "title"),
                ("type", "type"),
                ("scheduled_date", "scheduledDate"),
                ("scheduled_time", "scheduledTime"),
            ):
                if field in changes:
                    record[key] = changes[field]
            if changes.get("status") is not None:
                status, changed = resolve_transition(record["status"], changes["status"])
                if changed:
                    record["status"] = status.value
                    if status == schemas.InterviewStatus.COMPLETED:
                        record["completedAt"] = utcnow().isoformat()
            return self._interview(data, record)

    # Chats and messages

    def add_chat(self, user_id: str, interview_id: str, title_factory: TitleFactory) -> schemas.ChatSession:
        with self._transaction() as data:
            project = self._project(data, user_id, interview_id)
            existing = [self._chat(data, s) for s in data["sessions"] if s["projectId"] == project["id"]]
            now = utcnow()
            chat = schemas.ChatSession(
                id=new_id(),
                title=title_factory(existing),
                created_at=now,
                updated_at=now,
            )
            data["sessions"].append({
                **_dump(chat),
                "projectId": interview_id,
                "userId": user_id,
            })
            return chat

    def rename_chat(self, user_id: str, interview_id: str, chat_id: str, title: str) -> schemas.ChatSession:
        with self._transaction() as data:
            record = self._session_record(data, user_id, interview_id, chat_id)
            record["title"] = title
            return self._chat(data, record)

    def append_message(
        self, user_id: str, interview_id: str, chat_id: str, role: schemas.MessageRole, content: str
    ) -> schemas.Message:
        with self._transaction() as data:
            session = self._session_record(data, user_id, interview_id, chat_id)
            previous = [
                m for m in data["messages"]
                if m["sessionId"] == chat_id and m["projectId"] == interview_id
            ]
            last = _parse_time(previous[-1]["timestamp"]) if previous else None
            message = schemas.Message(
                id=new_id(),
                role=schemas.MessageRole(role),
                content=content,
                timestamp=next_timestamp(last),
            )
            data["messages"].append({
                **_dump(message),
                "sessionId": chat_id,
                "projectId": interview_id,
            })
            session["updatedAt"] = message.timestamp.isoformat()

            project = self._project(data, user_id, interview_id)
            status, changed = advance_on_activity(project["status"])
            if changed:
                project["status"] = status.value
            return message

    # Reports

    def add_report(self, user_id: str, report: schemas.Report) -> schemas.Report:
        with self._transaction() as data:
            self._project(data, user_id, report.interview_id)
            data["reports"].append({**_dump(report), "userId": user_id})
            return report

    def list_reports(self, user_id: str, interview_id: str) -> List[schemas.Report]:
        data = self._snapshot()
        owned = [
            (i, r) for i, r in enumerate(data["reports"])
            if r["userId"] == user_id and r["interviewId"] == interview_id
        ]
        owned.sort(key=lambda pair: (pair[1]["createdAt"], pair[0]), reverse=True)
        return [schemas.Report.model_validate(r) for _, r in owned]
