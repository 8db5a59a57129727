"""Reopening rejected items."""

from __future__ import annotations

import logging

from .config import RestartPolicy
from .engine import TransitionEngine
from .errors import NoActiveWorkflowStep, NotBrandAdmin, NotRejected, require
from .identity import RoleDirectory
from .persistence import HistoryAction, Item, ItemStatus

logger = logging.getLogger(__name__)


class RestartCoordinator:
    """Puts a rejected item back at the first step of its workflow.

    Only a brand administrator (or a global admin) may restart. Whether the
    steps approved before the rejection stay completed is decided by
    ``RestartPolicy``; ``preserve`` keeps them.
    """

    def __init__(
        self,
        engine: TransitionEngine,
        directory: RoleDirectory,
        policy: RestartPolicy | None = None,
    ) -> None:
        self._engine = engine
        self._directory = directory
        self._policy = RestartPolicy(policy or engine.config.restart_policy)

    @property
    def policy(self) -> RestartPolicy:
        return self._policy

    async def restart(
        self, item_id: str, actor_id: str, is_global_admin: bool = False
    ) -> Item:
        actor_id = require(actor_id, "actor_id")
        item = await self._engine.load_item(item_id)
        if item.status != ItemStatus.REJECTED:
            raise NotRejected(
                f"Item {item.id} is not rejected (status {item.status.value})",
                item_id=item.id,
            )
        if not is_global_admin and not await self._directory.is_brand_admin(
            actor_id, item.brand_id
        ):
            logger.warning(f"User {actor_id} tried to restart item {item.id} without brand admin rights")
            raise NotBrandAdmin(
                f"User {actor_id} is not an administrator of brand {item.brand_id}",
                item_id=item.id,
            )

        first = (
            await self._engine.resolver.first_step(item.workflow_id)
            if item.workflow_id
            else None
        )
        if first is None:
            raise NoActiveWorkflowStep(
                f"Workflow of item {item.id} has no steps to restart from",
                item_id=item.id,
            )

        completed = (
            set(item.completed_step_ids)
            if self._policy == RestartPolicy.PRESERVE
            else set()
        )
        updated = item.model_copy(
            update={
                "current_step_id": first.id,
                "status": ItemStatus.PENDING_REVIEW,
                "completed_step_ids": completed,
            }
        )
        entry = self._engine.audit.entry(
            item.id, actor_id, HistoryAction.RESTART, step=first
        )
        committed = await self._engine.repository.commit_transition(
            updated, item.version, entry
        )
        logger.info(
            f"Item {item.id} restarted at step {first.id} by {actor_id} "
            f"(policy {self._policy.value})"
        )

        await self._engine.notify_assignees(committed, first, entry)
        return committed
