"""Anti-Captcha: createTask / getTaskResult / getBalance (JSON API)."""
import base64
from typing import Any

import httpx

from scrapeworker.captcha.base import PollResult, json_object
from scrapeworker.scraping.exceptions import CaptchaSolveError

API_BASE = "https://api.anti-captcha.com"


class AntiCaptchaProvider:
    """Image-CAPTCHA через Anti-Captcha (ImageToTextTask)."""

    name = "anticaptcha"

    def __init__(self, api_key: str, http: httpx.AsyncClient) -> None:
        self.api_key = api_key
        self.http = http

    async def _call(self, method: str, body: dict) -> dict[str, Any]:
        response = await self.http.post(f"{API_BASE}/{method}", json={"clientKey": self.api_key, **body})
        response.raise_for_status()
        return json_object(response)

    async def submit(self, image: bytes) -> str:
        try:
            payload = await self._call("createTask", {
                "task": {
                    "type": "ImageToTextTask",
                    "body": base64.b64encode(image).decode("ascii"),
                },
            })
        except (httpx.HTTPError, ValueError) as e:
            raise CaptchaSolveError(f"anticaptcha createTask failed: {e}") from e

        if payload.get("errorId", 0) != 0:
            raise CaptchaSolveError(
                f"anticaptcha createTask rejected: {payload.get('errorDescription') or payload.get('errorCode')}"
            )
        if payload.get("taskId") is None:
            raise CaptchaSolveError("anticaptcha createTask returned no taskId")
        return str(payload["taskId"])

    async def poll(self, handle: str) -> PollResult:
        try:
            payload = await self._call("getTaskResult", {"taskId": int(handle)})
        except httpx.HTTPStatusError as e:
            return PollResult.failed(f"anticaptcha HTTP {e.response.status_code}")
        except ValueError:
            return PollResult.failed("anticaptcha bad response")

        if payload.get("errorId", 0) != 0:
            return PollResult.failed(
                f"anticaptcha: {payload.get('errorDescription') or payload.get('errorCode')}"
            )
        if payload.get("status") == "ready":
            solution = payload.get("solution")
            if not isinstance(solution, dict) or "text" not in solution:
                return PollResult.failed("anticaptcha: ready without solution text")
            return PollResult.solved(str(solution["text"]))
        return PollResult.pending()

    async def balance(self) -> float:
        try:
            payload = await self._call("getBalance", {})
            if payload.get("errorId", 0) != 0:
                raise CaptchaSolveError(f"anticaptcha getBalance failed: {payload.get('errorDescription')}")
            return float(payload["balance"])
        except (KeyError, TypeError, ValueError) as e:
            raise CaptchaSolveError(f"anticaptcha bad balance response: {e}") from e
