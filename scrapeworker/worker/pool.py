"""Пул воркеров: фиксированное число asyncio-задач, читающих общий канал."""
import asyncio
import time

from loguru import logger

from scrapeworker.config import Settings
from scrapeworker.database import sanitize_error
from scrapeworker.metrics import ServiceMetrics
from scrapeworker.models.result import ScrapeResult, StatusUpdate, TaskStatus
from scrapeworker.models.task import ScrapeTask, ScrapingOptions
from scrapeworker.reporter import ReportError, StatusReporter
from scrapeworker.result_store import ResultStore, ResultStoreError
from scrapeworker.scraping.exceptions import ScrapeError
from scrapeworker.scraping.executor import ScrapeExecutor

BASE_COST = 0.01
JS_COST = 0.02
RETRY_COST = 0.005
PROXY_COST = 0.01
FAILURE_COST_FACTOR = 0.5


def calculate_cost(options: ScrapingOptions, success: bool) -> float:
    """Стоимость задачи. Неудачная задача стоит половину."""
    cost = BASE_COST
    if options.enable_js:
        cost += JS_COST
    cost += RETRY_COST * options.max_retries
    if options.proxy_url:
        cost += PROXY_COST
    if not success:
        cost *= FAILURE_COST_FACTOR
    return cost


class WorkerPool:
    """
    pool_size воркеров на одном канале. Каждый обрабатывает одну задачу за раз;
    задача, взятая из канала, всегда доводится до конца, даже при shutdown.
    """

    def __init__(
        self,
        channel: asyncio.Queue[ScrapeTask],
        executor: ScrapeExecutor,
        store: ResultStore,
        reporter: StatusReporter,
        settings: Settings,
        metrics: ServiceMetrics | None = None,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        self.channel = channel
        self.executor = executor
        self.store = store
        self.reporter = reporter
        self.settings = settings
        self.metrics = metrics or ServiceMetrics()
        self.shutdown_event = shutdown_event or asyncio.Event()
        self._workers: list[asyncio.Task[None]] = []

    @property
    def size(self) -> int:
        return len(self._workers)

    def start(self, pool_size: int | None = None) -> None:
        size = pool_size if pool_size is not None else self.settings.worker_pool_size
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"worker-{i}")
            for i in range(size)
        ]
        logger.info(f"[pool] Started {size} workers (channel size {self.channel.maxsize})")

    async def stop(self) -> list[ScrapeTask]:
        """
        Остановить воркеров, дождавшись задач в работе.
        Вернуть задачи, оставшиеся в канале (их сообщения уже удалены из очереди).
        """
        self.shutdown_event.set()
        if self._workers:
            logger.info(f"[pool] Waiting for {len(self._workers)} workers to finish...")
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers = []

        leftovers: list[ScrapeTask] = []
        while not self.channel.empty():
            leftovers.append(self.channel.get_nowait())
            self.channel.task_done()
        if leftovers:
            logger.warning(f"[pool] {len(leftovers)} tasks left unprocessed in the channel")
        return leftovers

    async def _next_task(self) -> ScrapeTask | None:
        """Дождаться задачи или shutdown. None — пора выходить."""
        if self.shutdown_event.is_set():
            return None

        get_task = asyncio.ensure_future(self.channel.get())
        stop_task = asyncio.ensure_future(self.shutdown_event.wait())
        try:
            await asyncio.wait({get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            get_task.cancel()
            raise
        finally:
            stop_task.cancel()

        if get_task.done():
            return get_task.result()
        get_task.cancel()
        try:
            # get мог успеть завершиться между wait и cancel
            return await get_task
        except asyncio.CancelledError:
            return None

    async def _worker(self, worker_id: int) -> None:
        logger.debug(f"[pool] Worker {worker_id} started")
        while True:
            task = await self._next_task()
            if task is None:
                break
            try:
                with logger.contextualize(task_id=task.task_id, worker=worker_id):
                    await self.process_task(task)
            except Exception as e:
                logger.exception(f"[pool] Worker {worker_id}: unhandled error in task {task.task_id}: {e}")
            finally:
                self.channel.task_done()
        logger.debug(f"[pool] Worker {worker_id} stopped")

    async def _report(self, result: ScrapeResult) -> None:
        try:
            await self.reporter.report(StatusUpdate.from_result(result))
        except ReportError as e:
            logger.warning(f"[pool] {result.task_id}: failed to report {result.status.value}: {e}")

    async def _send_callback(self, task: ScrapeTask, result: ScrapeResult) -> None:
        if not task.callback_url:
            return
        try:
            await self.reporter.send_callback(task.callback_url, result)
        except ReportError as e:
            logger.warning(f"[pool] {task.task_id}: user callback failed: {e}")

    async def process_task(self, task: ScrapeTask) -> ScrapeResult:
        """in_progress → выполнить → стоимость → сохранить → терминальный статус."""
        started = time.monotonic()
        options = task.options
        output_format = options.output_format or self.settings.default_output_format

        result = ScrapeResult(
            task_id=task.task_id,
            url=task.url,
            metadata={
                "output_format": output_format,
                "enable_js": options.enable_js,
                "max_retries": options.max_retries,
            },
        )
        result.transition(TaskStatus.IN_PROGRESS)
        self.metrics.tasks_in_flight += 1
        logger.info(f"[pool] Processing task {task.task_id}: {task.url}")

        try:
            await self._report(result)

            try:
                result.data = await self.executor.execute(task)
                success = True
            except ScrapeError as e:
                result.error = sanitize_error(str(e))
                success = False
                logger.warning(f"[pool] Task {task.task_id} failed: {result.error}")
            except Exception as e:
                result.error = sanitize_error(f"{type(e).__name__}: {e}")
                success = False
                logger.exception(f"[pool] Task {task.task_id} crashed: {e}")

            result.duration = int((time.monotonic() - started) * 1000)
            result.cost = calculate_cost(options, success)

            if success:
                try:
                    result.location = await self.store.store(
                        result.model_copy(update={"status": TaskStatus.COMPLETED}),
                        output_format,
                    )
                    result.transition(TaskStatus.COMPLETED)
                except ResultStoreError as e:
                    result.error = sanitize_error(f"Failed to upload result: {e}")
                    result.transition(TaskStatus.FAILED)
                    logger.error(f"[pool] Task {task.task_id}: {result.error}")
            else:
                result.transition(TaskStatus.FAILED)

            if result.status == TaskStatus.COMPLETED:
                self.metrics.tasks_completed += 1
            else:
                self.metrics.tasks_failed += 1

            await self._report(result)
            await self._send_callback(task, result)
        finally:
            self.metrics.tasks_in_flight -= 1

        logger.info(
            f"[pool] Task {task.task_id} {result.status.value} "
            f"in {result.duration}ms (cost {result.cost:.4f})"
        )
        return result
