"""Loguru sink: WARNING+ записи воркера в таблицу Supabase с контекстом задачи."""
from typing import Any

from supabase import Client

LOGS_TABLE = "worker_logs"
MAX_MESSAGE_LENGTH = 4000


def log_row(record: dict[str, Any]) -> dict[str, Any]:
    """Строка worker_logs из loguru record. task_id и worker берутся из logger.contextualize."""
    extra = record["extra"]
    message = str(record["message"])
    exception = record.get("exception")
    if exception is not None and exception.type is not None:
        message = f"{message} [{exception.type.__name__}: {exception.value}]"

    return {
        "level": record["level"].name,
        "module": record["name"],
        "message": message[:MAX_MESSAGE_LENGTH],
        "task_id": extra.get("task_id"),
        "worker": extra.get("worker"),
    }


def create_supabase_sink(db: Client):
    """Фабрика: вернуть sink-функцию, привязанную к db-клиенту."""

    def sink(message) -> None:
        try:
            db.table(LOGS_TABLE).insert(log_row(message.record)).execute()
        except Exception:
            pass  # Ошибка логирования не должна ронять воркер

    return sink
