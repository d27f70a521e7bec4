"""Storage adapters for interviews, chats, messages and reports."""
from interview_coach.database.store import SqlTranscriptStore, TranscriptStore
from interview_coach.database.json_store import JsonFileTranscriptStore


def build_store(settings) -> TranscriptStore:
    """Construct the store selected by ``settings.STORAGE_BACKEND``."""
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "sql":
        return SqlTranscriptStore(settings.DATABASE_URL)
    if backend == "json":
        return JsonFileTranscriptStore(settings.JSON_STORE_PATH)
    raise ValueError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")


__all__ = ["TranscriptStore", "SqlTranscriptStore", "JsonFileTranscriptStore", "build_store"]
