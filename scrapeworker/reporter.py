"""Отправка статусов задач в управляющий API и коллбэков пользователю."""
from typing import Any

import httpx
from loguru import logger

from scrapeworker.config import Settings
from scrapeworker.metrics import SERVICE_VERSION
from scrapeworker.models.result import ScrapeResult, StatusUpdate, TaskStatus

USER_AGENT = f"scrapeworker/{SERVICE_VERSION}"


class ReportError(Exception):
    """Управляющий API (или коллбэк) недоступен / ответил не 2xx."""


class StatusReporter:
    """HTTP-клиент управляющего API. Ошибки — ReportError, решение о фатальности у вызывающего."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self.base_url = settings.api_base_url.rstrip("/")
        self.api_key = settings.api_key.get_secret_value()
        self.timeout = settings.reporter_timeout
        self.callback_timeout = settings.callback_timeout
        self.http = http

    def _headers(self, auth: bool = True) -> dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if auth:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        content: str | None = None,
        auth: bool = True,
        timeout: float | None = None,
    ) -> httpx.Response:
        headers = self._headers(auth)
        if content is not None:
            headers["Content-Type"] = "application/json"
        try:
            response = await self.http.request(
                method,
                url,
                json=json,
                content=content,
                headers=headers,
                timeout=timeout or self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # InvalidURL не наследует HTTPError: битый callback_url пользователя
            raise ReportError(f"{method} {url} failed: {e}") from e
        if not response.is_success:
            raise ReportError(f"{method} {url} returned status {response.status_code}")
        return response

    async def report(self, update: StatusUpdate) -> None:
        """POST /callback с одним статусом."""
        await self._request("POST", f"{self.base_url}/callback", json=update.to_payload())
        logger.debug(f"[reporter] {update.task_id}: reported {update.status.value}")

    async def report_batch(self, updates: list[StatusUpdate]) -> None:
        """POST /callback/batch. Пустой список — ничего не отправляем."""
        if not updates:
            return
        await self._request(
            "POST",
            f"{self.base_url}/callback/batch",
            json=[u.to_payload() for u in updates],
        )
        logger.debug(f"[reporter] Reported batch of {len(updates)} updates")

    async def report_error(self, task_id: str, message: str) -> None:
        await self.report(StatusUpdate(task_id=task_id, status=TaskStatus.FAILED, error=message))

    async def health_check(self) -> None:
        """GET /health управляющего API. Бросает ReportError, если он недоступен."""
        await self._request("GET", f"{self.base_url}/health")

    async def send_callback(self, callback_url: str | None, result: ScrapeResult) -> None:
        """POST полного результата на URL пользователя (без нашего токена)."""
        if not callback_url:
            logger.debug(f"[reporter] {result.task_id}: no callback URL, skipping")
            return
        response = await self._request(
            "POST",
            callback_url,
            content=result.to_json(),
            auth=False,
            timeout=self.callback_timeout,
        )
        logger.info(f"[reporter] {result.task_id}: callback sent ({response.status_code})")
