"""Очередь задач на Supabase Queues (pgmq) через схему pgmq_public."""
import asyncio
import time
from dataclasses import dataclass
from typing import Any

from loguru import logger
from supabase import Client

from scrapeworker.database import run_in_thread

PGMQ_SCHEMA = "pgmq_public"
QUEUE_REPOLL_INTERVAL = 1.0  # секунды между пустыми чтениями внутри long-poll


@dataclass(frozen=True)
class QueueMessage:
    """Сообщение из очереди. handle — msg_id для delete."""

    handle: int
    body: Any
    read_count: int = 0


class QueueError(Exception):
    """Очередь недоступна или вернула ошибку."""


class SupabaseQueue:
    """Тонкая обёртка над RPC pgmq_public: read, send, delete, archive."""

    def __init__(self, db: Client, queue_name: str) -> None:
        self.db = db
        self.queue_name = queue_name

    async def _rpc(self, fn: str, params: dict[str, Any]) -> Any:
        try:
            result = await run_in_thread(
                self.db.schema(PGMQ_SCHEMA).rpc(fn, params).execute
            )
        except Exception as e:
            raise QueueError(f"pgmq {fn} failed: {e}") from e
        return result.data

    async def receive(
        self,
        max_batch: int,
        wait_seconds: float,
        visibility_timeout: int,
        shutdown_event: asyncio.Event | None = None,
    ) -> list[QueueMessage]:
        """
        Long-poll: читать до max_batch сообщений, скрывая их на visibility_timeout.
        Пока очередь пуста, перечитывать раз в QUEUE_REPOLL_INTERVAL до wait_seconds.
        """
        deadline = time.monotonic() + wait_seconds
        while True:
            rows = await self._rpc("read", {
                "queue_name": self.queue_name,
                "sleep_seconds": visibility_timeout,
                "n": max_batch,
            })
            if rows:
                return [
                    QueueMessage(
                        handle=row["msg_id"],
                        body=row.get("message"),
                        read_count=row.get("read_ct", 0),
                    )
                    for row in rows
                ]

            remaining = deadline - time.monotonic()
            if remaining <= 0 or (shutdown_event is not None and shutdown_event.is_set()):
                return []
            await asyncio.sleep(min(QUEUE_REPOLL_INTERVAL, remaining))

    async def delete(self, handle: int) -> None:
        """Удалить сообщение после успешной передачи воркерам."""
        deleted = await self._rpc("delete", {
            "queue_name": self.queue_name,
            "message_id": handle,
        })
        if deleted is False:
            # pgmq возвращает false, если сообщение уже удалено или не найдено
            logger.warning(f"[queue] Message {handle} was not found on delete")

    async def archive(self, handle: int) -> None:
        """Перенести сообщение в архивную таблицу pgmq (dead letter: из очереди ушло, но доступно для разбора)."""
        archived = await self._rpc("archive", {
            "queue_name": self.queue_name,
            "message_id": handle,
        })
        if archived is False:
            logger.warning(f"[queue] Message {handle} was not found on archive")

    async def send(self, message: dict[str, Any], delay_seconds: int = 0) -> int:
        """Положить сообщение в очередь. Вернуть msg_id."""
        data = await self._rpc("send", {
            "queue_name": self.queue_name,
            "message": message,
            "sleep_seconds": delay_seconds,
        })
        if isinstance(data, list):
            data = data[0] if data else None
        if data is None:
            raise QueueError("pgmq send returned no message id")
        return int(data)
