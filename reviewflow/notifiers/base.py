"""Base notifier interface for post-commit review events."""

from __future__ import annotations

import abc
import logging
from typing import Any, Dict, Iterable

logger = logging.getLogger(__name__)


class BaseNotifier(metaclass=abc.ABCMeta):
    """Abstract fire-and-forget notification dispatcher.

    The engine calls ``notify`` only after a transition has committed and
    ignores its outcome; implementations may raise, the caller logs it.
    """

    async def connect(self) -> None:
        """Open connection to the delivery backend (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the delivery backend (no-op by default)."""
        pass

    @abc.abstractmethod
    async def notify(
        self, user_ids: Iterable[str], event: str, payload: Dict[str, Any]
    ) -> None:
        """Deliver ``event`` with ``payload`` to each of ``user_ids``."""
        raise NotImplementedError


class LoggingNotifier(BaseNotifier):
    """Writes notifications to the log instead of delivering them."""

    async def notify(
        self, user_ids: Iterable[str], event: str, payload: Dict[str, Any]
    ) -> None:
        recipients = sorted(user_ids)
        logger.info(f"Notification {event} for {recipients}: {payload}")


async def dispatch_safely(
    notifier: BaseNotifier,
    user_ids: Iterable[str],
    event: str,
    payload: Dict[str, Any],
) -> bool:
    """Send a notification, logging instead of raising on failure.

    Returns ``True`` if the notifier accepted the event.
    """
    recipients = sorted(set(user_ids))
    if not recipients:
        logger.debug(f"No recipients for {event} notification")
        return False
    try:
        await notifier.notify(recipients, event, payload)
    except Exception as e:
        logger.error(f"Failed to dispatch {event} notification to {recipients}: {e}")
        return False
    return True
