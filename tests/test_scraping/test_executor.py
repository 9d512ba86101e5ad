"""Тесты ScrapeExecutor: выбор пути, валидация URL, ретраи."""
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tests.conftest import make_settings, make_task

PAGE = "<html><body><h1>Hello</h1><p class='price'>10</p></body></html>"


def make_executor(static_result=PAGE, browser_result=PAGE, proxies=None, settings=None):
    from scrapeworker.scraping.executor import ScrapeExecutor
    from scrapeworker.scraping.proxy import ProxyRotator

    static = MagicMock()
    static.fetch = AsyncMock()
    if isinstance(static_result, list):
        static.fetch.side_effect = static_result
    else:
        static.fetch.return_value = static_result
    browser = MagicMock()
    browser.render = AsyncMock(return_value=browser_result)
    browser.close = AsyncMock()
    sleep = AsyncMock()

    executor = ScrapeExecutor(
        settings or make_settings(),
        MagicMock(spec=httpx.AsyncClient),
        proxies or ProxyRotator([]),
        static=static,
        browser=browser,
        sleep=sleep,
    )
    return executor, static, browser, sleep


SCHEMA = {"title": {"selector": "h1"}, "price": {"selector": ".price"}}


class TestDispatch:
    async def test_static_path(self) -> None:
        executor, static, browser, _ = make_executor()

        data = await executor.execute(make_task(schema=SCHEMA))

        assert data == {"title": "Hello", "price": "10"}
        static.fetch.assert_awaited_once()
        browser.render.assert_not_awaited()

    async def test_js_path(self) -> None:
        executor, static, browser, _ = make_executor()
        task = make_task(schema=SCHEMA, options={"enable_js": True})

        data = await executor.execute(task)

        assert data["title"] == "Hello"
        static.fetch.assert_not_awaited()
        browser.render.assert_awaited_once_with(task, None, executor.solve)

    async def test_task_proxy_passed_through(self) -> None:
        from scrapeworker.scraping.proxy import ProxyRotator

        executor, static, _, _ = make_executor(proxies=ProxyRotator(["http://pool:1"]))
        task = make_task(options={"proxy_url": "http://own:2"})

        await executor.execute(task)
        static.fetch.assert_awaited_once_with(task, "http://own:2")

    async def test_pool_proxy_used_without_task_proxy(self) -> None:
        from scrapeworker.scraping.proxy import ProxyRotator

        executor, static, _, _ = make_executor(proxies=ProxyRotator(["http://pool:1"]))
        task = make_task()

        await executor.execute(task)
        static.fetch.assert_awaited_once_with(task, "http://pool:1")

    async def test_missing_fields_do_not_fail_task(self) -> None:
        executor, _, _, _ = make_executor(static_result="<p>nothing here</p>")

        data = await executor.execute(make_task(schema=SCHEMA))
        assert data == {"title": None, "price": None}


class TestValidation:
    @pytest.mark.parametrize("url", ["ftp://example.com", "example.com", "https://", "javascript:alert(1)"])
    async def test_invalid_url(self, url: str) -> None:
        from scrapeworker.scraping.exceptions import InvalidTaskError

        executor, static, _, _ = make_executor()
        with pytest.raises(InvalidTaskError):
            await executor.execute(make_task(url=url))
        static.fetch.assert_not_awaited()


class TestRetries:
    async def test_retryable_error_retried(self) -> None:
        from scrapeworker.scraping.exceptions import FetchError

        executor, static, _, sleep = make_executor(static_result=[FetchError("503"), PAGE])
        task = make_task(schema=SCHEMA, options={"max_retries": 2, "retry_delay": 3})

        data = await executor.execute(task)

        assert data["title"] == "Hello"
        assert static.fetch.await_count == 2
        sleep.assert_awaited_once_with(3)

    async def test_gives_up_after_max_retries(self) -> None:
        from scrapeworker.scraping.exceptions import FetchError

        executor, static, _, sleep = make_executor(
            static_result=[FetchError("a"), FetchError("b"), FetchError("c")]
        )
        with pytest.raises(FetchError, match="c"):
            await executor.execute(make_task(options={"max_retries": 2}))
        assert static.fetch.await_count == 3
        assert sleep.await_count == 2

    async def test_no_retries_by_default(self) -> None:
        from scrapeworker.scraping.exceptions import FetchError

        executor, static, _, _ = make_executor(static_result=[FetchError("down")])
        with pytest.raises(FetchError):
            await executor.execute(make_task())
        assert static.fetch.await_count == 1

    async def test_non_retryable_error_not_retried(self) -> None:
        from scrapeworker.scraping.exceptions import CaptchaConfigError

        executor, _, browser, _ = make_executor()
        browser.render.side_effect = CaptchaConfigError("no solver")

        with pytest.raises(CaptchaConfigError):
            await executor.execute(make_task(options={"enable_js": True, "max_retries": 3}))
        assert browser.render.await_count == 1


class TestSolve:
    async def test_solve_uses_task_provider(self) -> None:
        """solve() — полный цикл с провайдером задачи (manual не ходит в сеть)."""
        from scrapeworker.captcha.manual import MANUAL_SOLUTION

        executor, _, _, _ = make_executor()
        task = make_task(options={"enable_js": True, "captcha_solver": "manual"})

        assert await executor.solve(task, b"img") == MANUAL_SOLUTION

    async def test_solve_without_solver(self) -> None:
        from scrapeworker.scraping.exceptions import CaptchaConfigError

        executor, _, _, _ = make_executor()
        with pytest.raises(CaptchaConfigError):
            await executor.solve(make_task(), b"img")
