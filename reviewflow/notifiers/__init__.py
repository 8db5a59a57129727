"""Notifier factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ReviewflowConfig, load_config
from .base import BaseNotifier, LoggingNotifier, dispatch_safely
from .inmemory import InMemoryNotifier


def get_notifier(
    backend: Optional[str] = None, config: Optional[ReviewflowConfig] = None
) -> BaseNotifier:
    """Factory function to get the configured notifier."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("REVIEWFLOW_NOTIFIER")
        or config.notifier.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryNotifier()
    elif backend == "log":
        return LoggingNotifier()
    elif backend == "redis":
        from .redis import RedisNotifier

        redis_conf = config.notifier.redis
        return RedisNotifier(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            queue=redis_conf.queue,
        )
    elif backend == "webhook":
        from .webhook import WebhookNotifier

        hook = config.notifier.webhook
        if not hook.url:
            raise ValueError("Webhook notifier requires notifier.webhook.url")
        return WebhookNotifier(hook.url, timeout=hook.timeout, headers=hook.headers)
    else:
        raise ValueError(f"Unsupported notifier backend: {backend}")


__all__ = [
    "BaseNotifier",
    "InMemoryNotifier",
    "LoggingNotifier",
    "dispatch_safely",
    "get_notifier",
]
