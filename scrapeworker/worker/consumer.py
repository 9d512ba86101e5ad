"""Чтение задач из очереди и передача их воркерам через ограниченный канал."""
import asyncio

from loguru import logger
from pydantic import ValidationError

from scrapeworker.config import Settings
from scrapeworker.metrics import ServiceMetrics
from scrapeworker.models.task import ScrapeTask
from scrapeworker.queue import QueueError, QueueMessage, SupabaseQueue


class QueueConsumer:
    """
    Long-poll очереди → канал воркеров.

    Сообщение удаляется из очереди только после того, как задача попала в канал.
    Битое сообщение архивируется и воркерам не передаётся.
    Канал полон: сообщение остаётся в очереди и вернётся после visibility timeout.
    """

    def __init__(
        self,
        queue: SupabaseQueue,
        channel: asyncio.Queue[ScrapeTask],
        settings: Settings,
        metrics: ServiceMetrics | None = None,
    ) -> None:
        self.queue = queue
        self.channel = channel
        self.settings = settings
        self.metrics = metrics or ServiceMetrics()

    def _parse(self, message: QueueMessage) -> ScrapeTask | None:
        try:
            return ScrapeTask.from_message(message.body)
        except (ValidationError, ValueError, TypeError) as e:
            logger.error(
                f"[consumer] Malformed message {message.handle} "
                f"(read {message.read_count} times), archiving: {e}"
            )
            self.metrics.messages_malformed += 1
            return None

    async def _archive(self, message: QueueMessage) -> None:
        """Убрать битое сообщение из очереди в архив pgmq, иначе оно будет приходить вечно."""
        try:
            await self.queue.archive(message.handle)
        except QueueError as e:
            logger.warning(f"[consumer] Failed to archive message {message.handle}: {e}")

    async def poll(self, shutdown_event: asyncio.Event | None = None) -> list[ScrapeTask]:
        """Один цикл чтения. Вернуть задачи, переданные в канал."""
        messages = await self.queue.receive(
            max_batch=self.settings.queue_max_batch,
            wait_seconds=self.settings.queue_wait_seconds,
            visibility_timeout=self.settings.queue_visibility_timeout,
            shutdown_event=shutdown_event,
        )
        if not messages:
            return []

        self.metrics.messages_received += len(messages)
        logger.debug(f"[consumer] Received {len(messages)} messages")

        delivered: list[ScrapeTask] = []
        for message in messages:
            task = self._parse(message)
            if task is None:
                await self._archive(message)
                continue

            try:
                self.channel.put_nowait(task)
            except asyncio.QueueFull:
                self.metrics.backpressure_rejections += 1
                logger.error(
                    f"[consumer] Job channel is full, task {task.task_id} stays in the queue "
                    f"(message {message.handle})"
                )
                continue

            delivered.append(task)
            try:
                await self.queue.delete(message.handle)
            except QueueError as e:
                # Задача уже у воркера; сообщение может прийти повторно
                logger.warning(f"[consumer] Failed to delete message {message.handle}: {e}")

        return delivered

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Цикл чтения до shutdown_event. Канал не дренируется."""
        logger.info(
            f"[consumer] Started (queue={self.queue.queue_name}, "
            f"batch={self.settings.queue_max_batch}, wait={self.settings.queue_wait_seconds}s)"
        )

        while not shutdown_event.is_set():
            try:
                await self.poll(shutdown_event)
                continue
            except QueueError as e:
                logger.error(f"[consumer] Error receiving messages: {e}")
            except Exception as e:
                logger.exception(f"[consumer] Unexpected error in poll loop: {e}")

            # Пауза после ошибки, прерываемая shutdown
            try:
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=self.settings.queue_error_backoff,
                )
            except TimeoutError:
                pass

        logger.info("[consumer] Stopped")
