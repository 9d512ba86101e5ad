"""Результат задачи и статус-апдейты для управляющего API."""
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(StrEnum):
    """Статус задачи. Переходы только вперёд."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

# Разрешённые переходы: pending → in_progress → completed | failed
_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: TERMINAL_STATUSES,
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Попытка перехода статуса назад, через шаг или из терминального."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ScrapeResult(BaseModel):
    """Результат обработки задачи. Создаётся ровно один раз воркером."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str
    url: str
    data: dict[str, Any] | None = None
    status: TaskStatus = TaskStatus.PENDING
    error: str | None = None
    cost: float = 0.0
    duration: int = 0  # мс
    timestamp: datetime = Field(default_factory=_utcnow)
    location: str | None = Field(default=None, alias="s3_location")
    metadata: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, status: TaskStatus) -> None:
        """Перевести результат в новый статус, проверив допустимость перехода."""
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Task {self.task_id}: {self.status.value} → {status.value} is not allowed"
            )
        self.status = status

    def to_json(self) -> str:
        """Каноничный JSON (wire-формат: s3_location)."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ScrapeResult":
        return cls.model_validate_json(raw)


class StatusUpdate(BaseModel):
    """Лёгкая проекция ScrapeResult для POST /callback."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str
    status: TaskStatus
    error: str | None = None
    cost: float | None = None
    duration: int | None = None
    location: str | None = Field(default=None, alias="s3_location")
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_result(cls, result: ScrapeResult) -> "StatusUpdate":
        """Снимок текущего состояния результата."""
        if result.status == TaskStatus.IN_PROGRESS:
            return cls(task_id=result.task_id, status=result.status)
        return cls(
            task_id=result.task_id,
            status=result.status,
            error=result.error,
            cost=result.cost,
            duration=result.duration,
            location=result.location,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
