"""Тесты APScheduler-задач обслуживания."""
from unittest.mock import AsyncMock, MagicMock

import httpx

from tests.conftest import make_settings


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestCheckCaptchaBalance:
    async def test_skipped_without_solver(self) -> None:
        from scrapeworker.worker.scheduler import check_captcha_balance

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async with _http(handler) as http:
            assert await check_captcha_balance(make_settings(), http) is None

    async def test_returns_balance(self) -> None:
        from scrapeworker.worker.scheduler import check_captcha_balance

        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": 1, "request": "12.5"})

        settings = make_settings(default_captcha_solver="2captcha", default_captcha_api_key="k")
        async with _http(handler) as http:
            balance = await check_captcha_balance(settings, http)

        assert balance == 12.5
        assert seen[0].url.params["action"] == "getbalance"

    async def test_provider_error_returns_none(self) -> None:
        from scrapeworker.worker.scheduler import check_captcha_balance

        settings = make_settings(default_captcha_solver="2captcha", default_captcha_api_key="k")
        async with _http(lambda r: httpx.Response(200, json={"status": 0, "request": "ERROR_KEY_DOES_NOT_EXIST"})) as http:
            assert await check_captcha_balance(settings, http) is None

    async def test_http_error_returns_none(self) -> None:
        from scrapeworker.worker.scheduler import check_captcha_balance

        settings = make_settings(default_captcha_solver="2captcha", default_captcha_api_key="k")
        async with _http(lambda r: httpx.Response(502)) as http:
            assert await check_captcha_balance(settings, http) is None

    async def test_missing_key_returns_none(self) -> None:
        from scrapeworker.worker.scheduler import check_captcha_balance

        settings = make_settings(default_captcha_solver="anticaptcha")
        async with _http(lambda r: httpx.Response(200)) as http:
            assert await check_captcha_balance(settings, http) is None

    async def test_manual_provider(self) -> None:
        from scrapeworker.worker.scheduler import check_captcha_balance

        settings = make_settings(default_captcha_solver="manual")
        async with _http(lambda r: httpx.Response(200)) as http:
            assert await check_captcha_balance(settings, http) == 0.0


class TestCleanupOldResults:
    async def test_uses_retention(self) -> None:
        from scrapeworker.worker.scheduler import cleanup_old_results

        store = MagicMock()
        store.delete_older_than = AsyncMock(return_value=7)

        deleted = await cleanup_old_results(store, make_settings(result_retention_days=14))

        assert deleted == 7
        store.delete_older_than.assert_awaited_once_with(14)

    async def test_store_error_returns_zero(self) -> None:
        from scrapeworker.result_store import ResultStoreError
        from scrapeworker.worker.scheduler import cleanup_old_results

        store = MagicMock()
        store.delete_older_than = AsyncMock(side_effect=ResultStoreError("denied"))

        assert await cleanup_old_results(store, make_settings()) == 0


class TestCreateScheduler:
    async def test_jobs_with_solver(self) -> None:
        from scrapeworker.worker.scheduler import create_scheduler

        settings = make_settings(default_captcha_solver="manual")
        scheduler = create_scheduler(MagicMock(), settings, MagicMock())

        ids = {job.id for job in scheduler.get_jobs()}
        assert ids == {"check_captcha_balance", "cleanup_old_results"}

    async def test_no_balance_job_without_solver(self) -> None:
        from scrapeworker.worker.scheduler import create_scheduler

        scheduler = create_scheduler(MagicMock(), make_settings(), MagicMock())

        assert [job.id for job in scheduler.get_jobs()] == ["cleanup_old_results"]
