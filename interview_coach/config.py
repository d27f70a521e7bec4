"""Simple configuration for the mock interview coach."""
import os
from dotenv import load_dotenv

load_dotenv()

# An interview chat counts as finished, and may be scored, once the
# interviewer has asked this many questions.
QUESTION_THRESHOLD = 5

# Exact reply the interviewer model sends when it is ready to be scored.
REPORT_READY_SENTINEL = "[REPORT_READY]"

DEFAULT_OPENING_QUESTION = (
    "Hello, and welcome to this mock interview. "
    "To get started, could you briefly introduce yourself?"
)
TURN_FAILURE_MESSAGE = (
    "Sorry, I couldn't generate my next question just now. "
    "Please try sending your answer again in a moment."
)
EARLY_READY_FOLLOW_UP = (
    "Before we wrap up, could you walk me through one more concrete example "
    "from your experience that shows how you work?"
)


class Settings:
    # Storage
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql")  # sql | json
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./interview_coach.db")
    JSON_STORE_PATH = os.getenv("JSON_STORE_PATH", "./data.json")

    # OpenAI-compatible chat completions
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", 60))
    LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", 3))

    # App Settings
    DEBUG = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", 8000))
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


settings = Settings()
