"""Общие хелперы для тестов воркера."""
from typing import Any
from unittest.mock import AsyncMock, MagicMock


def make_settings(**overrides: Any):
    """Создать Settings без .env с обязательными полями."""
    from scrapeworker.config import Settings

    values: dict[str, Any] = {
        "supabase_url": "https://test.supabase.co",
        "supabase_service_key": "service-key",
        "api_base_url": "http://api.test",
        "api_key": "api-key",
        "captcha_poll_interval": 0.0,
        "captcha_max_attempts": 3,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_task(task_id: str = "task-1", url: str = "https://example.com", **fields: Any):
    """Создать ScrapeTask из wire-формата."""
    from scrapeworker.models.task import ScrapeTask

    body: dict[str, Any] = {"task_id": task_id, "url": url}
    body.update(fields)
    return ScrapeTask.from_message(body)


def make_reporter() -> MagicMock:
    """Мок StatusReporter, который запоминает отправленные статусы."""
    reporter = MagicMock()
    reporter.report = AsyncMock()
    reporter.send_callback = AsyncMock()
    reporter.health_check = AsyncMock()
    return reporter


def reported_statuses(reporter: MagicMock) -> list[str]:
    """Статусы из всех вызовов reporter.report(update)."""
    return [c.args[0].status.value for c in reporter.report.call_args_list]


def make_supabase() -> MagicMock:
    """Мок Supabase client с цепочкой schema().rpc().execute()."""
    db = MagicMock()
    rpc = db.schema.return_value.rpc
    rpc.return_value.execute.return_value = MagicMock(data=[])
    return db
