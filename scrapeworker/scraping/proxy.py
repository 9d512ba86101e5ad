"""Ротация прокси из PROXY_LIST (round-robin, общий индекс для всех воркеров)."""
import asyncio

from loguru import logger


class ProxyRotator:
    """
    Пул прокси с round-robin.
    Индекс общий для всех воркеров, читается и сдвигается под локом.
    """

    def __init__(self, proxies: list[str], enabled: bool = True) -> None:
        self.proxies = list(proxies)
        self.enabled = enabled
        self.current_index = 0
        self._lock = asyncio.Lock()

    async def next_proxy(self) -> str | None:
        """Следующий прокси или None, если ротация выключена / список пуст."""
        if not self.enabled or not self.proxies:
            return None
        async with self._lock:
            proxy = self.proxies[self.current_index]
            self.current_index = (self.current_index + 1) % len(self.proxies)
        logger.debug(f"[proxy] Rotating proxy #{self.proxies.index(proxy)}")
        return proxy

    async def choose(self, explicit: str | None) -> str | None:
        """Прокси задачи имеет приоритет над пулом."""
        if explicit:
            return explicit
        return await self.next_proxy()
