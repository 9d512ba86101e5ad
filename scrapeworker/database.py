"""Общие хелперы для синхронного клиента Supabase."""
import asyncio
import re
from typing import Any


async def run_in_thread(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Выполнить синхронный вызов Supabase в отдельном потоке."""
    return await asyncio.to_thread(func, *args, **kwargs)


def sanitize_error(error: str) -> str:
    """Убрать потенциальные креденшалы из сообщения об ошибке."""
    error = re.sub(r"://[^@\s/]+@", "://***:***@", error)
    # API-ключи CAPTCHA-сервисов в query string
    return re.sub(r"([?&](?:key|clientKey)=)[^&\s]+", r"\1***", error)
