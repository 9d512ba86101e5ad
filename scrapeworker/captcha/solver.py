"""Протокол решения CAPTCHA и выбор провайдера для задачи.

Состояния: Submitted → Pending → Solved | Failed | TimedOut.

* submit отклонён → Failed сразу, без повторов;
* poll вызывается раз в poll_interval; "не готово" (и сетевые сбои самого
  poll-запроса) → снова Pending; любой другой отказ → Failed;
* после max_attempts poll-ов без решения → TimedOut.

Повтор после Failed/TimedOut: это новый цикл с новым submit, его решает
вызывающий код (ретраи задачи), а не солвер.
"""
import asyncio
from collections.abc import Awaitable, Callable

import httpx
from loguru import logger

from scrapeworker.captcha.anticaptcha import AntiCaptchaProvider
from scrapeworker.captcha.base import CaptchaProvider, PollState
from scrapeworker.captcha.manual import ManualProvider
from scrapeworker.captcha.twocaptcha import TwoCaptchaProvider
from scrapeworker.config import Settings
from scrapeworker.models.task import ScrapingOptions
from scrapeworker.scraping.exceptions import (
    CaptchaConfigError,
    CaptchaSolveError,
    CaptchaTimeoutError,
)

Sleep = Callable[[float], Awaitable[None]]

# имя → (фабрика, нужен ли ключ)
PROVIDERS: dict[str, tuple[Callable[[str, httpx.AsyncClient], CaptchaProvider], bool]] = {
    "2captcha": (lambda key, http: TwoCaptchaProvider(key, http), True),
    "anticaptcha": (lambda key, http: AntiCaptchaProvider(key, http), True),
    "manual": (lambda key, http: ManualProvider(), False),
}
_PROVIDER_ALIASES = {"twocaptcha": "2captcha", "anti-captcha": "anticaptcha"}


def _normalize_name(name: str) -> str:
    name = name.strip().lower()
    return _PROVIDER_ALIASES.get(name, name)


def build_provider(name: str, api_key: str, http: httpx.AsyncClient) -> CaptchaProvider:
    """Создать провайдера по имени. Бросает CaptchaConfigError."""
    normalized = _normalize_name(name)
    entry = PROVIDERS.get(normalized)
    if entry is None:
        raise CaptchaConfigError(f"Unsupported CAPTCHA solver: {name}")
    factory, needs_key = entry
    if needs_key and not api_key:
        raise CaptchaConfigError(f"{normalized} API key is required")
    return factory(api_key, http)


def resolve_provider(
    options: ScrapingOptions,
    settings: Settings,
    http: httpx.AsyncClient,
) -> CaptchaProvider:
    """
    Провайдер для задачи: солвер/ключ из задачи перекрывают дефолт сервиса.
    Нет ни того, ни другого → CaptchaConfigError.
    """
    name = options.captcha_solver or settings.default_captcha_solver
    if not name:
        raise CaptchaConfigError("CAPTCHA detected but no solver is configured")
    api_key = options.captcha_api_key or settings.default_captcha_api_key.get_secret_value()
    return build_provider(name, api_key, http)


async def solve_captcha(
    provider: CaptchaProvider,
    image: bytes,
    poll_interval: float,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Пройти полный цикл submit/poll. Вернуть текст решения."""
    handle = await provider.submit(image)
    logger.info(f"[captcha] {provider.name}: challenge submitted (id={handle}), polling")

    for attempt in range(1, max_attempts + 1):
        try:
            result = await provider.poll(handle)
        except httpx.TransportError as e:
            logger.warning(f"[captcha] {provider.name}: poll {attempt}/{max_attempts} transport error: {e}")
        else:
            if result.state == PollState.SOLVED:
                logger.info(f"[captcha] {provider.name}: solved after {attempt} polls")
                return result.text
            if result.state == PollState.FAILED:
                raise CaptchaSolveError(f"CAPTCHA solving failed: {result.reason}")
            logger.debug(f"[captcha] {provider.name}: not ready ({attempt}/{max_attempts})")

        if attempt < max_attempts:
            await sleep(poll_interval)

    raise CaptchaTimeoutError(
        f"CAPTCHA solving timed out after {max_attempts} polls ({provider.name})"
    )
