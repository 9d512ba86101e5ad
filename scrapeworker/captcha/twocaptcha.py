"""2Captcha: in.php (загрузка) + res.php (статус, баланс)."""
import base64

import httpx

from scrapeworker.captcha.base import PollResult, json_object
from scrapeworker.scraping.exceptions import CaptchaSolveError

IN_URL = "http://2captcha.com/in.php"
RES_URL = "http://2captcha.com/res.php"
NOT_READY = "CAPCHA_NOT_READY"


class TwoCaptchaProvider:
    """Image-CAPTCHA через 2Captcha (json=1 ответы)."""

    name = "2captcha"

    def __init__(self, api_key: str, http: httpx.AsyncClient) -> None:
        self.api_key = api_key
        self.http = http

    async def submit(self, image: bytes) -> str:
        try:
            response = await self.http.post(IN_URL, data={
                "key": self.api_key,
                "method": "base64",
                "body": base64.b64encode(image).decode("ascii"),
                "json": 1,
            })
            payload = json_object(response)
        except (httpx.HTTPError, ValueError) as e:
            raise CaptchaSolveError(f"2captcha upload failed: {e}") from e

        if payload.get("status") != 1:
            raise CaptchaSolveError(f"2captcha upload rejected: {payload.get('request')}")
        if not payload.get("request"):
            raise CaptchaSolveError("2captcha upload returned no captcha id")
        return str(payload["request"])

    async def poll(self, handle: str) -> PollResult:
        response = await self.http.get(RES_URL, params={
            "key": self.api_key,
            "action": "get",
            "id": handle,
            "json": 1,
        })
        try:
            payload = json_object(response)
        except ValueError:
            return PollResult.failed(f"2captcha bad response: {response.text[:200]}")

        if payload.get("status") == 1:
            return PollResult.solved(str(payload.get("request", "")))
        if payload.get("request") == NOT_READY:
            return PollResult.pending()
        return PollResult.failed(f"2captcha: {payload.get('request')}")

    async def balance(self) -> float:
        response = await self.http.get(RES_URL, params={
            "key": self.api_key,
            "action": "getbalance",
            "json": 1,
        })
        response.raise_for_status()
        try:
            payload = json_object(response)
            if payload.get("status") != 1:
                raise CaptchaSolveError(f"2captcha balance failed: {payload.get('request')}")
            return float(payload["request"])
        except (KeyError, TypeError, ValueError) as e:
            raise CaptchaSolveError(f"2captcha bad balance response: {e}") from e
