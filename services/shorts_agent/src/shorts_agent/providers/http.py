"""Shared plumbing for providers that talk to HTTP APIs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from ..exceptions import ProviderError, RetryableProviderError

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 425, 429}


def _snippet(response: httpx.Response, limit: int = 300) -> str:
    try:
        text = response.text
    except httpx.ResponseNotRead:
        return ""
    return text[:limit]


class HttpProvider:
    """Base class holding an ``httpx.AsyncClient`` and the error mapping."""

    name = "http"

    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout: float = 60.0) -> None:
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, *, check: bool = True, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise RetryableProviderError(f"{self.name} request failed: {exc}", provider=self.name, cause=exc) from exc
        if check:
            self._raise_for_status(response)
        return response

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        message = f"{self.name} returned HTTP {status} for {response.request.url}: {_snippet(response)}"
        if status in _RETRYABLE_STATUS or status >= 500:
            raise RetryableProviderError(message, provider=self.name)
        raise ProviderError(message, provider=self.name)

    async def _download_to(self, url: str, path: Path, **kwargs: Any) -> int:
        """Stream ``url`` into ``path`` and return the number of bytes written."""

        written = 0
        try:
            async with self._client.stream("GET", url, **kwargs) as response:
                if response.is_error:
                    await response.aread()
                    self._raise_for_status(response)
                with path.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
                        written += len(chunk)
        except httpx.TransportError as exc:
            raise RetryableProviderError(f"{self.name} download failed: {exc}", provider=self.name, cause=exc) from exc
        logger.debug("%s downloaded %d bytes to %s", self.name, written, path)
        return written


def require_key(value: str | None, setting: str, provider: str) -> str:
    if not value:
        raise ProviderError(f"{setting} is not configured", provider=provider)
    return value


__all__ = ["HttpProvider", "require_key"]
