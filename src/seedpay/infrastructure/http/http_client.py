from __future__ import annotations

from typing import Any, Optional, Type
from types import TracebackType

import httpx


class HttpRequestError(Exception):
    """The request never produced a response (connect, timeout, protocol)."""


class HttpResponseError(Exception):
    """The server answered with a non-successful status code."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class AsyncHttpClient:
    """Thin asynchronous HTTP client wrapper around httpx.AsyncClient.

    - Normalizes base URLs and paths.
    - Applies a default timeout.
    - Raises HttpResponseError for non-successful responses and HttpRequestError
      for transport failures.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        url = self._url(path)
        try:
            resp = await self._client.get(url, **kwargs)
        except httpx.RequestError as e:
            raise HttpRequestError(f"GET {url} failed: {e}") from e
        if resp.is_error:
            raise HttpResponseError(
                resp.status_code, f"GET {url} returned {resp.status_code}"
            )
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
