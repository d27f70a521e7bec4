"""API routes for the mock interview coach."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from interview_coach.database.schemas import (
    AuthResponse,
    ChatCreate,
    ChatSession,
    ChatStart,
    ChatTitleUpdate,
    Interview,
    InterviewCreate,
    InterviewUpdate,
    LoginRequest,
    Message,
    MessageCreate,
    RegisterRequest,
    Report,
    TurnRequest,
    TurnResult,
    User,
)
from interview_coach.interview_service import InterviewService

logger = structlog.get_logger()
router = APIRouter()
bearer_scheme = HTTPBearer(auto_error=False)


def get_service(request: Request) -> InterviewService:
    return request.app.state.service


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: InterviewService = Depends(get_service),
) -> str:
    """Resolve the bearer token to a user id."""
    token = credentials.credentials if credentials else None
    return service.authenticate(token)


# Auth endpoints
@router.post("/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, service: InterviewService = Depends(get_service)):
    return service.register(request.name, request.email)


@router.post("/auth/login", response_model=AuthResponse)
async def login(request: LoginRequest, service: InterviewService = Depends(get_service)):
    return service.login(request.email)


@router.get("/auth/me", response_model=User)
async def me(
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    return service.get_user(user_id)


# Interview endpoints
@router.get("/interviews", response_model=List[Interview])
async def list_interviews(
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    """List the caller's interviews, newest first."""
    return service.get_interviews(user_id)


@router.post("/interviews", response_model=Interview, status_code=status.HTTP_201_CREATED)
async def create_interview(
    request: InterviewCreate,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    return service.create_interview(
        user_id,
        title=request.title,
        type=request.type,
        scheduled_date=request.scheduled_date,
        scheduled_time=request.scheduled_time,
    )


@router.get("/interviews/{interview_id}", response_model=Interview)
async def get_interview(
    interview_id: str,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    return service.get_interview(user_id, interview_id)


@router.patch("/interviews/{interview_id}", response_model=Interview)
async def update_interview(
    interview_id: str,
    request: InterviewUpdate,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    """Edit interview fields or move its status forward."""
    changes = request.model_dump(exclude_unset=True)
    return service.update_interview(user_id, interview_id, **changes)


# Chat endpoints
@router.post(
    "/interviews/{interview_id}/chats",
    response_model=ChatSession,
    status_code=status.HTTP_201_CREATED,
)
async def create_chat(
    interview_id: str,
    request: Optional[ChatCreate] = None,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    title = request.title if request else None
    return service.create_chat(user_id, interview_id, title)


@router.patch("/interviews/{interview_id}/chats/{chat_id}", response_model=ChatSession)
async def update_chat_title(
    interview_id: str,
    chat_id: str,
    request: ChatTitleUpdate,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    return service.update_chat_title(user_id, interview_id, chat_id, request.title.strip())


@router.post(
    "/interviews/{interview_id}/chats/{chat_id}/start",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def start_chat(
    interview_id: str,
    chat_id: str,
    request: Optional[ChatStart] = None,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    """Post the interviewer's opening question to an empty chat."""
    request = request or ChatStart()
    return await service.start_chat(user_id, interview_id, chat_id, request.personality)


@router.post(
    "/interviews/{interview_id}/chats/{chat_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def add_message(
    interview_id: str,
    chat_id: str,
    request: MessageCreate,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    return service.add_message(user_id, interview_id, chat_id, request.role, request.content)


@router.post("/interviews/{interview_id}/chats/{chat_id}/turn", response_model=TurnResult)
async def take_turn(
    interview_id: str,
    chat_id: str,
    request: TurnRequest,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    """Submit an answer and get the interviewer's next question, or the final report."""
    return await service.take_turn(user_id, interview_id, chat_id, request.content, request.personality)


@router.post("/interviews/{interview_id}/chats/{chat_id}/end", response_model=Report)
async def end_chat(
    interview_id: str,
    chat_id: str,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    """End the chat: score it and mark the interview completed."""
    return await service.end_chat(user_id, interview_id, chat_id)


# Report endpoints
@router.get("/interviews/{interview_id}/report", response_model=Report)
async def get_report(
    interview_id: str,
    chat_id: Optional[str] = Query(default=None, alias="chatId"),
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    report = service.get_report(user_id, interview_id, chat_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report not available. Generate one first."
        )
    return report


@router.get("/interviews/{interview_id}/reports", response_model=List[Report])
async def list_reports(
    interview_id: str,
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    return service.get_reports_for_interview(user_id, interview_id)


@router.post(
    "/interviews/{interview_id}/report",
    response_model=Report,
    status_code=status.HTTP_201_CREATED,
)
async def generate_report(
    interview_id: str,
    chat_id: Optional[str] = Query(default=None, alias="chatId"),
    user_id: str = Depends(get_current_user_id),
    service: InterviewService = Depends(get_service),
):
    """Generate a new report; earlier reports for the same chat are kept."""
    return await service.generate_report(user_id, interview_id, chat_id)


# Health check endpoint
@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "Mock Interview Coach API"}
