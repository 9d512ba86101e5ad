"""Общий интерфейс CAPTCHA-провайдера."""
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

import httpx


class PollState(StrEnum):
    PENDING = "pending"
    SOLVED = "solved"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResult:
    """Ответ на один poll: ещё не готово / решено (text) / ошибка (reason)."""

    state: PollState
    text: str = ""
    reason: str = ""

    @classmethod
    def pending(cls) -> "PollResult":
        return cls(PollState.PENDING)

    @classmethod
    def solved(cls, text: str) -> "PollResult":
        return cls(PollState.SOLVED, text=text)

    @classmethod
    def failed(cls, reason: str) -> "PollResult":
        return cls(PollState.FAILED, reason=reason)


def json_object(response: httpx.Response) -> dict[str, Any]:
    """JSON-тело ответа провайдера. Не JSON или не объект → ValueError."""
    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    return payload


class CaptchaProvider(Protocol):
    """Провайдер: submit → poll → (balance независимо)."""

    name: str

    async def submit(self, image: bytes) -> str:
        """Загрузить картинку. Вернуть handle или бросить CaptchaSolveError."""
        ...

    async def poll(self, handle: str) -> PollResult:
        """Один запрос статуса решения."""
        ...

    async def balance(self) -> float:
        """Баланс аккаунта у провайдера."""
        ...
