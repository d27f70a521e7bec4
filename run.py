"""Simple script to run the Mock Interview Coach API."""
from dotenv import load_dotenv
import uvicorn
from interview_coach.config import settings

load_dotenv()

if __name__ == "__main__":
    uvicorn.run(
        "interview_coach.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
