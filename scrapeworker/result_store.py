"""Хранение результатов задач в Supabase Storage."""
import asyncio
from datetime import UTC, date, datetime, timedelta
from typing import Any

from loguru import logger
from supabase import Client

from scrapeworker.database import run_in_thread
from scrapeworker.models.render import render_result
from scrapeworker.models.result import ScrapeResult

RESULTS_PREFIX = "results"
RAW_PREFIX = "raw"
UPLOAD_MAX_RETRIES = 3
UPLOAD_RETRY_DELAY = 1.0  # секунды, растёт линейно с номером попытки
LIST_PAGE_SIZE = 1000


class ResultStoreError(Exception):
    """Не удалось сохранить / получить результат из Storage."""


def _day_path(prefix: str, moment: datetime) -> str:
    moment = moment.astimezone(UTC) if moment.tzinfo else moment
    return f"{prefix}/{moment:%Y/%m/%d}"


def result_key(result: ScrapeResult, extension: str) -> str:
    """results/YYYY/MM/DD/<task_id>.<ext> — дата по timestamp результата (UTC)."""
    return f"{_day_path(RESULTS_PREFIX, result.timestamp)}/{result.task_id}.{extension}"


class ResultStore:
    """Бакет с результатами. Location = '<bucket>/<key>'."""

    def __init__(self, db: Client, bucket: str) -> None:
        self.db = db
        self.bucket = bucket

    def _bucket(self) -> Any:
        return self.db.storage.from_(self.bucket)

    async def _upload(self, key: str, data: bytes, content_type: str, metadata: dict[str, str] | None = None) -> None:
        file_options: dict[str, Any] = {"content-type": content_type, "upsert": "true"}
        if metadata:
            file_options["metadata"] = metadata

        for attempt in range(1, UPLOAD_MAX_RETRIES + 1):
            try:
                await run_in_thread(self._bucket().upload, key, data, file_options)
                return
            except Exception as e:
                if attempt < UPLOAD_MAX_RETRIES:
                    logger.warning(
                        f"[result_store] Upload failed ({key}), "
                        f"attempt {attempt}/{UPLOAD_MAX_RETRIES}: {e}"
                    )
                    await asyncio.sleep(UPLOAD_RETRY_DELAY * attempt)
                    continue
                raise ResultStoreError(f"upload of {key} failed: {e}") from e

    async def store(self, result: ScrapeResult, output_format: str | None = None) -> str:
        """Отрендерить результат в нужный формат и загрузить. Вернуть location."""
        body, content_type, extension = render_result(result, output_format)
        key = result_key(result, extension)
        metadata = {
            "task_id": result.task_id,
            "url": result.url,
            "status": result.status.value,
            "created_at": result.timestamp.isoformat(),
        }
        await self._upload(key, body, content_type, metadata)

        location = f"{self.bucket}/{key}"
        logger.info(f"[result_store] Stored {result.task_id} → {location} ({len(body)} bytes)")
        return location

    async def store_raw(self, task_id: str, content_type: str, data: bytes) -> str:
        """Сырые данные (например, HTML страницы) под raw/YYYY/MM/DD/<task_id>."""
        key = f"{_day_path(RAW_PREFIX, datetime.now(UTC))}/{task_id}"
        await self._upload(key, data, content_type, {"task_id": task_id})
        return f"{self.bucket}/{key}"

    async def signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Временная ссылка на объект."""
        try:
            response = await run_in_thread(self._bucket().create_signed_url, key, expires_in)
        except Exception as e:
            raise ResultStoreError(f"signed URL for {key} failed: {e}") from e
        url = response.get("signedURL") or response.get("signedUrl")
        if not url:
            raise ResultStoreError(f"signed URL for {key}: empty response")
        return url

    async def delete(self, key: str) -> None:
        try:
            await run_in_thread(self._bucket().remove, [key])
        except Exception as e:
            raise ResultStoreError(f"delete of {key} failed: {e}") from e

    async def list_results(self, prefix: str = RESULTS_PREFIX, max_keys: int = LIST_PAGE_SIZE) -> list[str]:
        """Ключи объектов непосредственно под prefix (без рекурсии)."""
        prefix = prefix.rstrip("/")
        try:
            entries = await run_in_thread(self._bucket().list, prefix, {"limit": max_keys})
        except Exception as e:
            raise ResultStoreError(f"list of {prefix} failed: {e}") from e
        return [f"{prefix}/{entry['name']}" for entry in entries or [] if entry.get("name")]

    async def delete_older_than(self, days: int, today: date | None = None) -> int:
        """Удалить результаты за дни старше retention. Вернуть число удалённых объектов."""
        cutoff = (today or datetime.now(UTC).date()) - timedelta(days=days)
        deleted = 0

        for year_path in await self.list_results(RESULTS_PREFIX):
            for month_path in await self.list_results(year_path):
                for day_path in await self.list_results(month_path):
                    try:
                        year, month, day = (int(p) for p in day_path.split("/")[-3:])
                        day_date = date(year, month, day)
                    except ValueError:
                        logger.warning(f"[result_store] Unexpected path in bucket: {day_path}")
                        continue
                    if day_date >= cutoff:
                        continue

                    keys = await self.list_results(day_path)
                    if keys:
                        await run_in_thread(self._bucket().remove, keys)
                        deleted += len(keys)
                        logger.info(f"[result_store] Removed {len(keys)} results from {day_path}")
        return deleted
