"""
Положить задачу скрапинга в очередь (для разработки и ручной проверки).

Использование:
    python -m scrapeworker.cli.enqueue task.json              # одна задача
    python -m scrapeworker.cli.enqueue task.json --count 5    # 5 копий с суффиксом -1..-5
    python -m scrapeworker.cli.enqueue task.json --dry-run    # только валидация
"""
import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger
from pydantic import ValidationError
from supabase import create_client

from scrapeworker.config import load_settings
from scrapeworker.models.task import ScrapeTask
from scrapeworker.queue import SupabaseQueue


def load_task(path: Path) -> ScrapeTask:
    """Прочитать и провалидировать JSON задачи. Бросает ValueError / ValidationError."""
    return ScrapeTask.from_message(path.read_text(encoding="utf-8"))


def expand_copies(task: ScrapeTask, count: int) -> list[ScrapeTask]:
    """count копий задачи с уникальными task_id."""
    if count <= 1:
        return [task]
    return [task.model_copy(update={"task_id": f"{task.task_id}-{i}"}) for i in range(1, count + 1)]


async def enqueue(path: Path, count: int = 1, dry_run: bool = False) -> list[int]:
    """Отправить задачу (или её копии) в очередь. Вернуть msg_id."""
    tasks = expand_copies(load_task(path), count)

    if dry_run:
        for task in tasks:
            logger.info(f"[dry-run] {task.task_id}: {task.url} (js={task.options.enable_js})")
        return []

    settings = load_settings()
    db = create_client(settings.supabase_url, settings.supabase_service_key.get_secret_value())
    queue = SupabaseQueue(db, settings.queue_name)

    message_ids: list[int] = []
    for task in tasks:
        msg_id = await queue.send(task.to_message())
        message_ids.append(msg_id)
        logger.info(f"Enqueued {task.task_id} → {settings.queue_name} (msg_id={msg_id})")
    return message_ids


def main() -> None:
    parser = argparse.ArgumentParser(description="Отправить задачу скрапинга в очередь")
    parser.add_argument("task_file", type=Path, help="JSON-файл задачи")
    parser.add_argument("--count", type=int, default=1, help="Сколько копий отправить")
    parser.add_argument("--dry-run", action="store_true", help="Только провалидировать задачу")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO")

    try:
        asyncio.run(enqueue(args.task_file, count=args.count, dry_run=args.dry_run))
    except (ValidationError, ValueError, OSError) as e:
        logger.error(f"Invalid task file {args.task_file}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
