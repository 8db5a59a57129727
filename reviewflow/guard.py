"""Authorization of reviewers against an item's current step."""

from __future__ import annotations

import logging
from typing import Optional

from .persistence import Item
from .resolver import StepResolver

logger = logging.getLogger(__name__)


class AssignmentGuard:
    """Decides whether an actor may approve or reject an item right now."""

    def __init__(self, resolver: StepResolver) -> None:
        self._resolver = resolver

    async def denial_reason(
        self, item: Item, actor_id: str, is_global_admin: bool = False
    ) -> Optional[str]:
        """Return why ``actor_id`` may not act on ``item``, or ``None`` if allowed.

        Never raises: a failed lookup is itself a reason to deny.
        """
        if is_global_admin:
            return None
        if not item.current_step_id:
            return "item is not at an active workflow step"
        try:
            step = await self._resolver.get_step(item.current_step_id)
            if step is None or step.workflow_id != item.workflow_id:
                return "current step does not belong to the item's workflow"
            assignees = await self._resolver.resolve_assignees(step, item.brand_id)
        except Exception as e:
            logger.error(f"Assignment check failed for item {item.id}: {e}")
            return "could not verify assignment for the current step"
        if actor_id not in assignees:
            return f"not an assignee of the current step '{step.name or step.id}'"
        return None

    async def can_act(
        self, item: Item, actor_id: str, is_global_admin: bool = False
    ) -> bool:
        """Return ``True`` if the actor may act on the item's current step."""
        return await self.denial_reason(item, actor_id, is_global_admin) is None
