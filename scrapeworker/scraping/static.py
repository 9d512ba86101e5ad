"""Статическая загрузка страницы через httpx (без JS)."""
import httpx
from loguru import logger

from scrapeworker.config import Settings
from scrapeworker.models.task import ScrapeTask
from scrapeworker.scraping.exceptions import FetchError


class StaticFetcher:
    """Один GET на задачу. Клиент создаётся на запрос — прокси у задач разные."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    def _headers(self, task: ScrapeTask) -> dict[str, str]:
        options = task.options
        headers = {"User-Agent": options.user_agent or self.settings.default_user_agent}
        # Кастомные заголовки задачи перекрывают UA
        headers.update(options.headers)
        return headers

    async def fetch(self, task: ScrapeTask, proxy: str | None = None) -> str:
        """Вернуть тело ответа. Сеть / таймаут / не-2xx → FetchError."""
        timeout = task.options.timeout or self.settings.default_timeout

        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                proxy=proxy,
                transport=self._transport,
            ) as client:
                response = await client.get(task.url, headers=self._headers(task))
        except httpx.TimeoutException as e:
            raise FetchError(f"request timed out after {timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"failed to fetch URL: {e}") from e

        if not response.is_success:
            raise FetchError(
                f"unexpected status code: {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(f"[static] {task.url} → {response.status_code} ({len(response.content)} bytes)")
        return response.text
