"""HTTP transport for the MemOS REST API.

Handles authentication, retries with exponential back-off, and
per-attempt timeouts. This is the only place that talks to MemOS over the
network; everything else goes through :class:`MemosClient`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from memos_lifecycle.config import Settings

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 0.15  # seconds
MAX_ERROR_BODY = 200


class Timeouts:
    """Named per-endpoint timeouts, in seconds."""

    DEFAULT = 10.0
    SEARCH = 8.0
    ADD = 15.0
    SUMMARIZE = 60.0
    EXTRACTION = 30.0
    RERANK = 10.0
    PROBE = 3.0


class TransportError(Exception):
    """A MemOS call failed after all retries."""

    def __init__(
        self,
        endpoint: str,
        message: str,
        *,
        status: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status
        self.body = body


class MemosClient:
    """Authenticated async client for one MemOS instance.

    Args:
        settings: Resolved plugin settings (URL, user, cube, secret).
        transport: Optional httpx transport, used by tests to stub the API.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        headers = {"Content-Type": "application/json"}
        if settings.internal_service_secret:
            headers["X-Internal-Service"] = settings.internal_service_secret
        self._http = httpx.AsyncClient(
            base_url=settings.memos_api_url,
            headers=headers,
            transport=transport,
        )

    @property
    def user_id(self) -> str:
        return self._settings.memos_user_id

    @property
    def cube_id(self) -> str:
        return self._settings.memos_cube_id

    async def call(
        self,
        endpoint: str,
        payload: dict[str, Any],
        *,
        retries: int = 2,
        timeout: float = Timeouts.DEFAULT,
    ) -> Any:
        """POST ``payload`` to ``endpoint`` and return the parsed JSON body.

        Each attempt gets its own timeout. Non-2xx responses, timeouts, and
        network errors are all retried the same way, with a delay of
        ``0.15s * 2**attempt`` between attempts.

        Raises:
            TransportError: After ``retries + 1`` failed attempts.
        """
        attempts = max(retries, 0) + 1
        for attempt in range(attempts):
            try:
                return await self._post_once(endpoint, payload, timeout)
            except TransportError as exc:
                if attempt == attempts - 1:
                    raise
                logger.debug(
                    "MemOS %s attempt %d failed (%s), retrying", endpoint, attempt + 1, exc
                )
                await asyncio.sleep(RETRY_BASE_DELAY * 2**attempt)

    async def _post_once(self, endpoint: str, payload: dict[str, Any], timeout: float) -> Any:
        try:
            resp = await self._http.post(endpoint, json=payload, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise TransportError(endpoint, f"Timeout after {timeout:.1f}s") from exc
        except httpx.HTTPError as exc:
            raise TransportError(endpoint, f"{type(exc).__name__}: {exc}") from exc

        if not resp.is_success:
            body = resp.text[:MAX_ERROR_BODY]
            raise TransportError(
                endpoint, f"HTTP {resp.status_code}: {body}", status=resp.status_code, body=body
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise TransportError(endpoint, f"{type(exc).__name__}: {exc}") from exc

    async def probe(self, timeout: float = Timeouts.PROBE) -> bool:
        """Cheap liveness check against the OpenAPI schema. Never raises."""
        try:
            resp = await self._http.head("/openapi.json", timeout=timeout)
        except httpx.HTTPError:
            return False
        return resp.is_success

    async def aclose(self) -> None:
        await self._http.aclose()
