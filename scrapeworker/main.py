"""Точка входа воркера — инициализация и запуск consumer + пула + health-сервера."""
import asyncio
import signal
import sys

import httpx
import uvicorn
from loguru import logger
from supabase import Client, create_client

from scrapeworker.api.app import create_app
from scrapeworker.config import Settings, load_settings
from scrapeworker.log_sink import create_supabase_sink
from scrapeworker.metrics import SERVICE_VERSION, ServiceMetrics
from scrapeworker.models.task import ScrapeTask
from scrapeworker.queue import QueueError, SupabaseQueue
from scrapeworker.reporter import StatusReporter
from scrapeworker.result_store import ResultStore
from scrapeworker.scraping.executor import ScrapeExecutor
from scrapeworker.scraping.proxy import ProxyRotator
from scrapeworker.worker.consumer import QueueConsumer
from scrapeworker.worker.pool import WorkerPool
from scrapeworker.worker.scheduler import create_scheduler


def configure_logging(settings: Settings, db: Client | None = None) -> None:
    """stderr (text/json) + файл в DEBUG + WARNING+ в Supabase."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        serialize=settings.log_format == "json",
    )
    if settings.log_level.upper() == "DEBUG":
        logger.add("logs/worker.log", rotation="100 MB", retention="7 days")

    if db is not None:
        logger.add(
            create_supabase_sink(db),
            level="WARNING",
            enqueue=True,
            serialize=False,
        )


async def requeue(queue: SupabaseQueue, tasks: list[ScrapeTask]) -> None:
    """Вернуть в очередь задачи, не взятые воркерами до остановки."""
    for task in tasks:
        try:
            await queue.send(task.to_message())
            logger.info(f"Requeued task {task.task_id}")
        except QueueError as e:
            logger.error(f"Failed to requeue task {task.task_id}: {e}")


async def main() -> None:
    """Инициализация и запуск воркера."""
    settings = load_settings()

    db = create_client(settings.supabase_url, settings.supabase_service_key.get_secret_value())
    configure_logging(settings, db)
    logger.info(f"Starting scrape worker v{SERVICE_VERSION}")

    http = httpx.AsyncClient()
    metrics = ServiceMetrics()

    queue = SupabaseQueue(db, settings.queue_name)
    store = ResultStore(db, settings.results_bucket)
    reporter = StatusReporter(settings, http)
    proxies = ProxyRotator(settings.proxies, enabled=settings.use_proxy_rotation)
    if settings.use_proxy_rotation:
        logger.info(f"Proxy rotation enabled ({len(settings.proxies)} proxies)")
    executor = ScrapeExecutor(settings, http, proxies)

    # Канал consumer → workers: единственный ограничитель параллелизма
    channel: asyncio.Queue[ScrapeTask] = asyncio.Queue(maxsize=settings.job_channel_size)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown_event.set)

    pool = WorkerPool(channel, executor, store, reporter, settings, metrics, shutdown_event)
    consumer = QueueConsumer(queue, channel, settings, metrics)

    # Health-сервер
    app = create_app(reporter, metrics)
    config = uvicorn.Config(app, host="0.0.0.0", port=settings.health_port, log_level="warning")
    server = uvicorn.Server(config)

    # APScheduler: баланс CAPTCHA, чистка старых результатов
    scheduler = create_scheduler(store, settings, http)
    scheduler.start()
    logger.info("Scheduler started")

    pool.start(settings.worker_pool_size)
    logger.info(f"Health server starting on port {settings.health_port}")

    async def run_worker() -> None:
        await consumer.run(shutdown_event)
        leftovers = await pool.stop()
        await requeue(queue, leftovers)
        server.should_exit = True

    async def run_server() -> None:
        # uvicorn перехватывает SIGINT/SIGTERM сам, и его остановка тоже означает shutdown
        await server.serve()
        shutdown_event.set()

    try:
        await asyncio.gather(run_server(), run_worker())
    finally:
        shutdown_event.set()
        scheduler.shutdown(wait=False)
        await executor.close()
        await http.aclose()
        logger.info("Scrape worker stopped gracefully")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
