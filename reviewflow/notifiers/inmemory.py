"""In-memory notifier for testing."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, NamedTuple

from .base import BaseNotifier


class SentNotification(NamedTuple):
    user_ids: List[str]
    event: str
    payload: Dict[str, Any]


class InMemoryNotifier(BaseNotifier):
    """Records every notification for later inspection."""

    def __init__(self) -> None:
        self.sent: List[SentNotification] = []
        self._lock = asyncio.Lock()

    async def notify(
        self, user_ids: Iterable[str], event: str, payload: Dict[str, Any]
    ) -> None:
        async with self._lock:
            self.sent.append(SentNotification(sorted(user_ids), event, dict(payload)))

    def events(self, event: str) -> List[SentNotification]:
        return [n for n in self.sent if n.event == event]
