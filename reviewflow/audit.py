"""Append-only audit history of item transitions."""

from __future__ import annotations

import logging
from typing import Optional

from .persistence import HistoryAction, HistoryEntry, ItemRepository, WorkflowStep

logger = logging.getLogger(__name__)


class AuditTrail:
    """Builds and reads history entries.

    Entries are only ever written through
    ``ItemRepository.commit_transition`` together with the item change they
    describe, so the trail cannot drift from item state. There is no update
    or delete operation.
    """

    def __init__(self, repository: ItemRepository) -> None:
        self._repository = repository

    def entry(
        self,
        item_id: str,
        actor_id: str,
        action: HistoryAction,
        step: Optional[WorkflowStep] = None,
        feedback: Optional[str] = None,
    ) -> HistoryEntry:
        """Create the entry for one transition; it is persisted on commit."""
        return HistoryEntry(
            item_id=item_id,
            step_id=step.id if step else None,
            step_name=step.name if step else None,
            actor_id=actor_id,
            action=action,
            feedback=feedback,
        )

    async def history(self, item_id: str) -> list[HistoryEntry]:
        """Return every recorded transition for ``item_id``, oldest first."""
        return await self._repository.list_history(item_id)

    async def latest(
        self, item_id: str, action: Optional[HistoryAction] = None
    ) -> Optional[HistoryEntry]:
        """Return the newest entry, optionally of a given action."""
        for entry in reversed(await self.history(item_id)):
            if action is None or entry.action == action:
                return entry
        return None
