"""Выполнение одной задачи: выбор пути (static / JS), ретраи, извлечение полей."""
import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlparse

import httpx
from loguru import logger

from scrapeworker.captcha.solver import resolve_provider, solve_captcha
from scrapeworker.config import Settings
from scrapeworker.models.task import ScrapeTask
from scrapeworker.scraping.browser import BrowserScraper
from scrapeworker.scraping.exceptions import InvalidTaskError, ScrapeError
from scrapeworker.scraping.extractor import extract
from scrapeworker.scraping.proxy import ProxyRotator
from scrapeworker.scraping.static import StaticFetcher

Sleep = Callable[[float], Awaitable[None]]


def validate_url(url: str) -> None:
    """Только абсолютные http(s) URL с хостом."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidTaskError(f"invalid URL: {url!r}")


class ScrapeExecutor:
    """
    Исполнитель задач. Один экземпляр на процесс, разделяется всеми воркерами:
    состояния между задачами не хранит (кроме общего ProxyRotator и браузера).
    """

    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient,
        proxies: ProxyRotator,
        static: StaticFetcher | None = None,
        browser: BrowserScraper | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.http = http
        self.proxies = proxies
        self.static = static or StaticFetcher(settings)
        self.browser = browser or BrowserScraper(settings, sleep=sleep)
        self._sleep = sleep

    async def close(self) -> None:
        await self.browser.close()

    async def solve(self, task: ScrapeTask, image: bytes) -> str:
        """Полный цикл решения CAPTCHA провайдером задачи (или дефолтным)."""
        provider = resolve_provider(task.options, self.settings, self.http)
        return await solve_captcha(
            provider,
            image,
            poll_interval=self.settings.captcha_poll_interval,
            max_attempts=self.settings.captcha_max_attempts,
            sleep=self._sleep,
        )

    async def _attempt(self, task: ScrapeTask) -> dict[str, Any]:
        proxy = await self.proxies.choose(task.options.proxy_url)
        if task.options.enable_js:
            logger.debug(f"[executor] {task.task_id}: JS rendering")
            markup = await self.browser.render(task, proxy, self.solve)
        else:
            logger.debug(f"[executor] {task.task_id}: static fetch")
            markup = await self.static.fetch(task, proxy)
        return extract(markup, task.extraction_schema)

    async def execute(self, task: ScrapeTask) -> dict[str, Any]:
        """
        Выполнить задачу. Вернуть извлечённые поля (по ключу на поле схемы).

        Ретраябельные ошибки повторяются до options.max_retries раз с паузой
        options.retry_delay. Бросает ScrapeError после последней попытки.
        """
        validate_url(task.url)

        attempts = task.options.max_retries + 1
        attempt = 1
        while True:
            try:
                data = await self._attempt(task)
            except ScrapeError as e:
                if not e.retryable or attempt >= attempts:
                    raise
                logger.warning(
                    f"[executor] {task.task_id}: attempt {attempt}/{attempts} failed "
                    f"({type(e).__name__}: {e}), retrying in {task.options.retry_delay}s"
                )
                await self._sleep(task.options.retry_delay)
                attempt += 1
                continue

            logger.info(f"[executor] {task.task_id}: extracted {len(data)} fields")
            return data
