"""Mock interview coach: interview sessions, AI interviewer turns and scored reports."""

__version__ = "1.0.0"
