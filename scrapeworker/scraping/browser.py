"""JS-рендеринг страницы в headless Chromium (Playwright) + прохождение CAPTCHA."""
import asyncio
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from loguru import logger
from playwright.async_api import Browser, Page, Playwright, Route, async_playwright
from playwright.async_api import Error as PlaywrightError

from scrapeworker.config import Settings
from scrapeworker.models.task import ScrapeTask
from scrapeworker.scraping.exceptions import CaptchaError, NavigationError

CAPTCHA_MARKERS = "#captcha, .captcha, [data-captcha], .g-recaptcha"
CAPTCHA_INPUT = "#captcha-input, .captcha-input, input[name*=captcha]"
CAPTCHA_SUBMIT = "#captcha-submit, .captcha-submit"

HUMAN_PAUSE_SECONDS = 0.5

# Снимок challenge → текст решения (солвер подставляет executor)
CaptchaSolve = Callable[[ScrapeTask, bytes], Awaitable[str]]
Sleep = Callable[[float], Awaitable[None]]

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
window.chrome = window.chrome || {runtime: {}};
"""

CANVAS_NOISE_SCRIPT = """
(() => {
    const toDataURL = HTMLCanvasElement.prototype.toDataURL;
    HTMLCanvasElement.prototype.toDataURL = function(...args) {
        const ctx = this.getContext('2d');
        if (ctx) {
            ctx.fillStyle = 'rgba(0,0,0,0.01)';
            ctx.fillRect(0, 0, 1, 1);
        }
        return toDataURL.apply(this, args);
    };
})();
"""

WEBGL_SPOOF_SCRIPT = """
(() => {
    const getParameter = WebGLRenderingContext.prototype.getParameter;
    WebGLRenderingContext.prototype.getParameter = function(param) {
        if (param === 37445) return 'Intel Inc.';
        if (param === 37446) return 'Intel Iris OpenGL Engine';
        return getParameter.call(this, param);
    };
})();
"""


class BrowserScraper:
    """
    Один Chromium на процесс, отдельный context на задачу
    (свой прокси / UA / viewport, изоляция cookies между задачами).
    """

    def __init__(self, settings: Settings, sleep: Sleep = asyncio.sleep) -> None:
        self.settings = settings
        self._sleep = sleep
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def _get_browser(self) -> Browser:
        """Ленивый запуск браузера — статические задачи его не требуют."""
        async with self._lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                logger.info("[browser] Launching headless Chromium")
                self._browser = await self._playwright.chromium.launch(
                    headless=True,
                    args=["--no-sandbox", "--disable-gpu", "--disable-dev-shm-usage"],
                )
            return self._browser

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    def _context_args(self, task: ScrapeTask, proxy: str | None) -> dict[str, Any]:
        options = task.options
        args: dict[str, Any] = {
            "user_agent": options.user_agent or self.settings.default_user_agent,
            "viewport": {
                "width": options.viewport_width or self.settings.default_viewport_width,
                "height": options.viewport_height or self.settings.default_viewport_height,
            },
            "java_script_enabled": not options.disable_js,
        }
        if options.headers:
            args["extra_http_headers"] = dict(options.headers)
        if proxy:
            args["proxy"] = {"server": proxy}
        return args

    def _blocked_types(self, task: ScrapeTask) -> set[str]:
        blocked: set[str] = set()
        if task.options.disable_images:
            blocked.add("image")
        if task.options.disable_css:
            blocked.update({"stylesheet", "font"})
        return blocked

    @asynccontextmanager
    async def _open_page(self, task: ScrapeTask, proxy: str | None) -> AsyncIterator[Page]:
        """Новый context + page под задачу, закрываются на выходе."""
        browser = await self._get_browser()
        context = await browser.new_context(**self._context_args(task, proxy))
        try:
            timeout_ms = (task.options.timeout or self.settings.default_timeout) * 1000
            context.set_default_timeout(timeout_ms)

            if task.options.stealth_mode or self.settings.default_stealth_mode:
                await context.add_init_script(STEALTH_SCRIPT)
                if task.options.canvas_fingerprint:
                    await context.add_init_script(CANVAS_NOISE_SCRIPT)
                if task.options.webgl_fingerprint:
                    await context.add_init_script(WEBGL_SPOOF_SCRIPT)

            blocked = self._blocked_types(task)
            if blocked:
                async def handle_route(route: Route) -> None:
                    if route.request.resource_type in blocked:
                        await route.abort()
                    else:
                        await route.continue_()

                await context.route("**/*", handle_route)

            yield await context.new_page()
        finally:
            await context.close()

    async def _random_delay(self, task: ScrapeTask) -> None:
        options = task.options
        min_delay = options.min_delay or self.settings.default_min_delay
        max_delay = options.max_delay or self.settings.default_max_delay
        delay = random.uniform(min_delay, max_delay) if max_delay > min_delay else float(min_delay)
        logger.debug(f"[browser] Random delay {delay:.2f}s")
        await self._sleep(delay)

    async def _human_behavior(self, page: Page, task: ScrapeTask) -> None:
        width = task.options.viewport_width or self.settings.default_viewport_width
        height = task.options.viewport_height or self.settings.default_viewport_height
        await page.mouse.move(random.randint(0, width - 1), random.randint(0, height - 1), steps=10)
        await page.click("body")
        await self._sleep(HUMAN_PAUSE_SECONDS)
        await page.mouse.wheel(0, random.randint(200, 800))

    async def _wait_for(self, page: Page, selector: str, state: str = "visible") -> None:
        try:
            await page.wait_for_selector(selector, state=state)
        except PlaywrightError as e:
            raise NavigationError(f"element '{selector}' did not appear: {e}") from e

    async def _pass_captcha(self, page: Page, task: ScrapeTask, solve: CaptchaSolve) -> None:
        """Если на странице есть CAPTCHA — снять challenge, решить и отправить ответ."""
        challenge = await page.query_selector(CAPTCHA_MARKERS)
        if challenge is None:
            return

        logger.info(f"[browser] CAPTCHA detected on {task.url}, attempting to solve")
        try:
            image = await challenge.screenshot(type="png")
        except PlaywrightError as e:
            raise CaptchaError(f"failed to capture CAPTCHA screenshot: {e}") from e

        solution = await solve(task, image)

        field = await page.query_selector(CAPTCHA_INPUT)
        if field is None:
            raise CaptchaError("CAPTCHA solved but no input field found on the page")
        await field.fill(solution)

        submit = await page.query_selector(CAPTCHA_SUBMIT)
        if submit is not None:
            await submit.click()
        else:
            await field.press("Enter")

    async def render(self, task: ScrapeTask, proxy: str | None, solve: CaptchaSolve) -> str:
        """Открыть страницу, выполнить шаги anti-bot, вернуть итоговый HTML."""
        options = task.options
        wait_selector = options.wait_for_element or "body"

        async with self._open_page(task, proxy) as page:
            try:
                response = await page.goto(task.url, wait_until="domcontentloaded")
            except PlaywrightError as e:
                raise NavigationError(f"failed to navigate to {task.url}: {e}") from e
            if response is not None and response.status >= 400:
                logger.warning(f"[browser] {task.url} responded with {response.status}")

            if options.random_delay:
                await self._random_delay(task)

            if options.human_behavior:
                try:
                    await self._human_behavior(page, task)
                except PlaywrightError as e:
                    # Шаги имитации не критичны для извлечения
                    logger.warning(f"[browser] Human behavior step failed: {e}")

            # Нужный элемент может быть скрыт за CAPTCHA, ждём его уже после неё
            await self._wait_for(page, "body", state="attached")
            await self._pass_captcha(page, task, solve)
            await self._wait_for(page, wait_selector)

            try:
                return await page.content()
            except PlaywrightError as e:
                raise NavigationError(f"failed to read page content: {e}") from e
