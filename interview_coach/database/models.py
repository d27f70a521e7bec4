"""Database models for the mock interview coach."""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from interview_coach.database.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, nullable=False)

    token = relationship("Token", back_populates="user", uselist=False)


class Token(Base):
    __tablename__ = "tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.user_id"), unique=True, nullable=False)
    token = Column(String, unique=True, index=True, nullable=False)

    user = relationship("User", back_populates="token")


class Interview(Base):
    __tablename__ = "interviews"

    id = Column(Integer, primary_key=True, index=True)
    interview_id = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    title = Column(String, nullable=False)
    type = Column(String, nullable=False)
    scheduled_date = Column(String, nullable=True)
    scheduled_time = Column(String, nullable=True)
    status = Column(String, nullable=False)  # scheduled, in-progress, completed
    created_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    # Surrogate keys preserve insertion order
    chats = relationship("ChatSession", back_populates="interview", order_by="ChatSession.id")


class ChatSession(Base):
    __tablename__ = "chat_sessions"
    __table_args__ = (UniqueConstraint("interview_pk", "chat_id"),)

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(String, index=True, nullable=False)
    interview_pk = Column(Integer, ForeignKey("interviews.id"), nullable=False)
    title = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    interview = relationship("Interview", back_populates="chats")
    messages = relationship("Message", back_populates="chat", order_by="Message.id")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String, index=True, nullable=False)
    chat_pk = Column(Integer, ForeignKey("chat_sessions.id"), nullable=False)
    role = Column(String, nullable=False)  # interviewer, user
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False)

    chat = relationship("ChatSession", back_populates="messages")


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    interview_id = Column(String, index=True, nullable=False)
    chat_id = Column(String, nullable=True)  # null for interview-level reports

    # Scores (0-100)
    overall_score = Column(Integer, nullable=False)
    expression = Column(Integer, nullable=False)
    content = Column(Integer, nullable=False)
    structure = Column(Integer, nullable=False)
    language = Column(Integer, nullable=False)

    strengths = Column(JSON, nullable=False)
    improvements = Column(JSON, nullable=False)
    recommendations = Column(JSON, nullable=False)

    created_at = Column(DateTime, nullable=False)
