import asyncio
import random
from typing import Optional

import httpx

# Ошибки транспорта, после которых запрос можно безопасно повторить
RETRYABLE_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)


def make_timeout(seconds: float) -> httpx.Timeout:
    return httpx.Timeout(connect=min(10.0, seconds), read=seconds, write=seconds, pool=seconds)


DEFAULT_TIMEOUT_SEC = 30.0


class RetryClient(httpx.AsyncClient):
    """
    Async HTTP client with retry + exponential backoff on transport errors.
    HTTP status codes are never retried here; callers decide what a 5xx means.
    """

    async def request(
        self,
        method: str,
        url: str,
        *args,
        retries: int = 0,
        backoff: float = 0.5,
        **kwargs,
    ):
        attempt = 0

        while True:
            try:
                return await super().request(method, url, *args, **kwargs)

            except RETRYABLE_ERRORS:
                attempt += 1
                if attempt > retries:
                    raise

                # exponential backoff + jitter
                await asyncio.sleep(
                    backoff * (2 ** (attempt - 1)) + random.uniform(0, 0.2)
                )

    async def get(self, url: str, *, retries: int = 0, backoff: float = 0.5, **kwargs):
        return await self.request("GET", url, retries=retries, backoff=backoff, **kwargs)

    async def post(self, url: str, *, retries: int = 0, backoff: float = 0.5, **kwargs):
        return await self.request("POST", url, retries=retries, backoff=backoff, **kwargs)


def build_client(timeout_sec: float = DEFAULT_TIMEOUT_SEC, transport: Optional[httpx.AsyncBaseTransport] = None) -> RetryClient:
    return RetryClient(timeout=make_timeout(timeout_sec), transport=transport)
