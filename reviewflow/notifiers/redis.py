"""Redis notifier for cross-process delivery."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

import redis.asyncio as redis

from .base import BaseNotifier


class RedisNotifier(BaseNotifier):
    """Pushes notification events onto a Redis list for a delivery worker."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        queue: str = "reviewflow:notifications",
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.queue = queue
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def notify(
        self, user_ids: Iterable[str], event: str, payload: Dict[str, Any]
    ) -> None:
        """Publish one JSON event per notification onto the queue."""
        if not self._redis:
            await self.connect()

        event_json = json.dumps(
            {
                "event": event,
                "user_ids": sorted(user_ids),
                "payload": payload,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            default=str,
        )
        await self._redis.lpush(self.queue, event_json)
