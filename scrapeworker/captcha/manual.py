"""Заглушка без сети — только для dev/test окружений."""
from loguru import logger

from scrapeworker.captcha.base import PollResult

MANUAL_SOLUTION = "manual"


class ManualProvider:
    """Возвращает фиксированное решение, ничего не стоит."""

    name = "manual"

    async def submit(self, image: bytes) -> str:
        logger.warning("[captcha] Manual solver in use, not for production")
        return "manual"

    async def poll(self, handle: str) -> PollResult:
        return PollResult.solved(MANUAL_SOLUTION)

    async def balance(self) -> float:
        return 0.0
