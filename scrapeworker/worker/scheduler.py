"""APScheduler-задачи обслуживания воркера."""
import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from scrapeworker.captcha.solver import build_provider
from scrapeworker.config import Settings
from scrapeworker.result_store import ResultStore, ResultStoreError
from scrapeworker.scraping.exceptions import CaptchaError

LOW_BALANCE_THRESHOLD = 1.0


async def check_captcha_balance(settings: Settings, http: httpx.AsyncClient) -> float | None:
    """Залогировать баланс дефолтного CAPTCHA-провайдера. Без провайдера — пропуск."""
    if not settings.default_captcha_solver:
        logger.debug("[check_captcha_balance] No default CAPTCHA solver, skipping")
        return None

    try:
        provider = build_provider(
            settings.default_captcha_solver,
            settings.default_captcha_api_key.get_secret_value(),
            http,
        )
        balance = await provider.balance()
    except (CaptchaError, httpx.HTTPError, ValueError, KeyError) as e:
        logger.warning(f"[check_captcha_balance] Failed to fetch balance: {e}")
        return None

    if provider.name != "manual" and balance < LOW_BALANCE_THRESHOLD:
        logger.warning(f"[check_captcha_balance] {provider.name} balance is low: {balance:.2f}")
    else:
        logger.info(f"[check_captcha_balance] {provider.name} balance: {balance:.2f}")
    return balance


async def cleanup_old_results(store: ResultStore, settings: Settings) -> int:
    """Удалить результаты старше result_retention_days."""
    try:
        deleted = await store.delete_older_than(settings.result_retention_days)
    except ResultStoreError as e:
        logger.error(f"[cleanup_old_results] {e}")
        return 0
    logger.info(f"[cleanup_old_results] Removed {deleted} results older than {settings.result_retention_days} days")
    return deleted


def create_scheduler(
    store: ResultStore,
    settings: Settings,
    http: httpx.AsyncClient,
) -> AsyncIOScheduler:
    """Создать и настроить APScheduler."""
    scheduler = AsyncIOScheduler(
        job_defaults={
            # Дефолтный misfire_grace_time=1с слишком мал для async job'ов
            "misfire_grace_time": None,
            "coalesce": True,
        }
    )

    # Каждый час: баланс CAPTCHA-провайдера
    if settings.default_captcha_solver:
        scheduler.add_job(
            check_captcha_balance,
            "interval",
            hours=1,
            kwargs={"settings": settings, "http": http},
            id="check_captcha_balance",
        )

    # По воскресеньям в 4:00: чистка старых результатов
    scheduler.add_job(
        cleanup_old_results,
        "cron",
        day_of_week="sun",
        hour=4,
        kwargs={"store": store, "settings": settings},
        id="cleanup_old_results",
    )

    return scheduler
