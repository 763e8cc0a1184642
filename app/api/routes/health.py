from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from datetime import datetime, timezone
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog
from app.config.settings import settings
from app.core.database import get_database

logger = structlog.get_logger()

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


def _ai_provider_status() -> str:
    if settings.ai_provider.lower() == "gemini":
        return "ok" if settings.gemini_api_key else "not_configured"
    return "ok" if settings.openai_api_key else "not_configured"


@router.get("/", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version="1.0.0",
        environment=settings.environment
    )


@router.get("/readiness")
async def readiness_check(db: Session = Depends(get_database)):
    """Readiness check: database reachable and an AI provider key present"""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error("Database readiness check failed", error=str(e))
        database = "unavailable"

    checks = {
        "database": database,
        settings.ai_provider.lower(): _ai_provider_status(),
    }

    all_ok = all(status == "ok" for status in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc)
    }
