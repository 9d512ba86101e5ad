"""Pydantic-схемы health-эндпоинтов."""
from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Ответ liveness-проверки."""

    status: str
    timestamp: datetime
    version: str
    uptime_seconds: int
    tasks_in_flight: int


class ReadyResponse(BaseModel):
    """Ответ readiness-проверки (доступность управляющего API)."""

    status: str
    error: str | None = None
