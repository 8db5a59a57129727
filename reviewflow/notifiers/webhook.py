"""HTTP webhook notifier."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import httpx

from .base import BaseNotifier


class WebhookNotifier(BaseNotifier):
    """POSTs notification events as JSON to a delivery endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}
        self._client = client

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def notify(
        self, user_ids: Iterable[str], event: str, payload: Dict[str, Any]
    ) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        response = await self._client.post(
            self.url,
            json={"event": event, "user_ids": sorted(user_ids), "payload": payload},
            headers=self.headers,
        )
        response.raise_for_status()
