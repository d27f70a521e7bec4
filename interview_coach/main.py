"""Main FastAPI application for the mock interview coach."""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog
import logging
import time

from interview_coach.config import settings
from interview_coach.database import build_store
from interview_coach.api_routes import router
from interview_coach.errors import InterviewCoachError
from interview_coach.interview_service import InterviewService
from interview_coach.llm_service import CompletionClient

logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def create_app(service: Optional[InterviewService] = None) -> FastAPI:
    """Build the application.

    ``service`` is injected by tests; otherwise it is built at startup from
    settings (store backend plus completion client).
    """
    app = FastAPI(
        title="Mock Interview Coach API",
        description="AI-run mock interviews with scored evaluation reports",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.service = service

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            url=str(request.url),
            client_ip=request.client.host if request.client else None
        )
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            process_time=process_time
        )
        return response

    # Domain errors map to their HTTP status
    @app.exception_handler(InterviewCoachError)
    async def interview_coach_exception_handler(request: Request, exc: InterviewCoachError):
        logger.warning(
            "Request rejected",
            error=exc.message,
            error_type=type(exc).__name__,
            method=request.method,
            url=str(request.url)
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
            headers=headers
        )

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            method=request.method,
            url=str(request.url)
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    # Include API routes
    app.include_router(router, prefix="/api/v1")

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "message": "Mock Interview Coach API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/health"
        }

    # Startup event
    @app.on_event("startup")
    async def startup_event():
        logger.info("Starting Mock Interview Coach API")
        if app.state.service is None:
            store = build_store(settings)
            app.state.service = InterviewService(store, CompletionClient())
            logger.info("Storage initialized", backend=settings.STORAGE_BACKEND)
        if not settings.OPENAI_API_KEY:
            logger.warning("OpenAI API key not configured - interviews will use fallback replies")
        logger.info("Application startup complete")

    # Shutdown event
    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Shutting down Mock Interview Coach API")

    return app


app = create_app()
