"""Approval state machine for workflow-gated items."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .audit import AuditTrail
from .config import ReviewflowConfig, load_config
from .contracts import Progress, ReviewAction
from .errors import (
    ItemNotFound,
    ItemRejected,
    NoActiveWorkflowStep,
    PermissionDenied,
    StateError,
    ValidationError,
    WorkflowAlreadyComplete,
    WorkflowNotFound,
    require,
)
from .guard import AssignmentGuard
from .identity import RoleDirectory
from .notifiers import BaseNotifier, LoggingNotifier, dispatch_safely
from .persistence import (
    HistoryAction,
    HistoryEntry,
    Item,
    ItemRepository,
    ItemStatus,
    ItemType,
    WorkflowStep,
)
from .resolver import StepResolver
from .utils.retry import retry_on_conflict

logger = logging.getLogger(__name__)


class TransitionEngine:
    """Applies approve and reject actions to items, one committed step at a time.

    Each call loads the item, checks state and assignment, builds the new
    item and its history entry, and commits both through
    ``ItemRepository.commit_transition``. The commit is a compare-and-swap on
    ``Item.version``, so of two concurrent calls on one item exactly one wins
    and the other raises ``ConflictError``. Notifications go out only after
    the commit and never affect the result.
    """

    def __init__(
        self,
        repository: ItemRepository,
        directory: RoleDirectory,
        notifier: BaseNotifier | None = None,
        config: ReviewflowConfig | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or load_config()
        self._notifier = notifier or LoggingNotifier()
        self.resolver = StepResolver(repository, directory)
        self.guard = AssignmentGuard(self.resolver)
        self.audit = AuditTrail(repository)

    @property
    def repository(self) -> ItemRepository:
        return self._repository

    @property
    def config(self) -> ReviewflowConfig:
        return self._config

    # ------------------------------------------------------------------
    async def load_item(self, item_id: str) -> Item:
        item_id = require(item_id, "item_id")
        item = await self._repository.get_item(item_id)
        if item is None:
            raise ItemNotFound(f"Item {item_id} not found", item_id=item_id)
        return item

    async def _current_step(self, item: Item) -> WorkflowStep:
        step = await self.resolver.get_step(item.current_step_id)
        if step is None or step.workflow_id != item.workflow_id:
            raise NoActiveWorkflowStep(
                f"Item {item.id} points at step {item.current_step_id}, "
                "which is not part of its workflow",
                item_id=item.id,
            )
        return step

    # ------------------------------------------------------------------
    async def create_item(
        self,
        brand_id: str,
        workflow_id: str,
        actor_id: str,
        item_type: Union[ItemType, str] = ItemType.CONTENT,
        title: str = "",
        item_id: Optional[str] = None,
    ) -> Item:
        """Persist a new draft item and place it at its workflow's first step."""
        brand_id = require(brand_id, "brand_id")
        workflow_id = require(workflow_id, "workflow_id")
        actor_id = require(actor_id, "actor_id")
        workflow = await self._repository.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(f"Workflow {workflow_id} not found")
        if workflow.brand_id != brand_id:
            raise ValidationError(
                f"Workflow {workflow_id} belongs to brand {workflow.brand_id}, not {brand_id}"
            )
        try:
            item_type = ItemType(item_type)
        except ValueError:
            raise ValidationError(f"Unknown item type: {item_type}")

        fields = dict(
            item_type=item_type,
            brand_id=brand_id,
            title=title,
            created_by=actor_id,
            workflow_id=workflow_id,
        )
        if item_id:
            fields["id"] = item_id
        item = Item(**fields)
        await self._repository.create_item(item)
        logger.info(f"Created {item_type.value} item {item.id} on workflow {workflow_id}")
        return await self.start(item.id, actor_id)

    async def start(self, item_id: str, actor_id: str) -> Item:
        """Move a draft item onto the first step of its workflow.

        An item whose workflow has no steps stays in draft.
        """
        actor_id = require(actor_id, "actor_id")
        item = await self.load_item(item_id)
        if item.status != ItemStatus.DRAFT:
            raise StateError(
                f"Item {item.id} is already in review (status {item.status.value})",
                item_id=item.id,
            )
        if not item.workflow_id:
            raise NoActiveWorkflowStep(
                f"Item {item.id} is not associated with a workflow", item_id=item.id
            )
        first = await self.resolver.first_step(item.workflow_id)
        if first is None:
            logger.info(f"Workflow {item.workflow_id} has no steps; item {item.id} stays draft")
            return item

        updated = item.model_copy(
            update={"current_step_id": first.id, "status": ItemStatus.PENDING_REVIEW}
        )
        entry = self.audit.entry(item.id, actor_id, HistoryAction.START, step=first)
        committed = await self._repository.commit_transition(updated, item.version, entry)
        logger.info(f"Item {item.id} entered review at step {first.id}")

        await self.notify_assignees(committed, first, entry)
        return committed

    # ------------------------------------------------------------------
    async def advance(
        self,
        item_id: str,
        actor_id: str,
        action: Union[ReviewAction, str],
        feedback: Optional[str] = None,
        is_global_admin: bool = False,
    ) -> Item:
        """Approve or reject the item's current step.

        Raises:
            ValidationError: malformed input, or a rejection without feedback.
            WorkflowAlreadyComplete: the item already passed its final step.
            NoActiveWorkflowStep: the item is not at any step.
            ItemRejected: the item must be restarted first.
            PermissionDenied: the actor is not an assignee of the current step.
            ConflictError: another transition committed first; safe to retry.
        """
        actor_id = require(actor_id, "actor_id")
        try:
            action = ReviewAction(action)
        except ValueError:
            raise ValidationError(f"Invalid action specified: {action}")
        feedback = feedback.strip() if feedback else None
        if (
            action == ReviewAction.REJECT
            and not feedback
            and self._config.require_rejection_feedback
        ):
            raise ValidationError("Feedback is required for rejection")

        item = await self.load_item(item_id)
        if item.current_step_id is None:
            if item.status.is_terminal:
                raise WorkflowAlreadyComplete(
                    f"Workflow already completed for item {item.id}", item_id=item.id
                )
            raise NoActiveWorkflowStep(
                f"Item {item.id} is not currently at a workflow step", item_id=item.id
            )
        if item.status == ItemStatus.REJECTED:
            raise ItemRejected(
                f"Item {item.id} was rejected; a brand admin must restart it",
                item_id=item.id,
            )

        step = await self._current_step(item)
        reason = await self.guard.denial_reason(item, actor_id, is_global_admin)
        if reason is not None:
            logger.warning(f"User {actor_id} denied on item {item.id}: {reason}")
            raise PermissionDenied(
                f"User {actor_id} cannot act on item {item.id}: {reason}",
                item_id=item.id,
            )

        if action == ReviewAction.REJECT:
            return await self._reject(item, step, actor_id, feedback)
        return await self._approve(item, step, actor_id, feedback)

    async def _reject(
        self, item: Item, step: WorkflowStep, actor_id: str, feedback: Optional[str]
    ) -> Item:
        # current step is kept so the rejection point stays traceable
        updated = item.model_copy(update={"status": ItemStatus.REJECTED})
        entry = self.audit.entry(
            item.id, actor_id, HistoryAction.REJECT, step=step, feedback=feedback
        )
        committed = await self._repository.commit_transition(updated, item.version, entry)
        logger.info(f"Item {item.id} rejected at step {step.id} by {actor_id}")

        if committed.created_by:
            await dispatch_safely(
                self._notifier,
                [committed.created_by],
                "rejected",
                self._payload(committed, step, entry),
            )
        return committed

    async def _approve(
        self, item: Item, step: WorkflowStep, actor_id: str, feedback: Optional[str]
    ) -> Item:
        completed = set(item.completed_step_ids) | {step.id}
        next_step = await self.resolver.next_step(step.workflow_id, step.order)
        if next_step is not None:
            update = {
                "current_step_id": next_step.id,
                "status": ItemStatus.PENDING_REVIEW,
                "completed_step_ids": completed,
            }
        else:
            all_steps = await self.resolver.steps(step.workflow_id)
            update = {
                "current_step_id": None,
                "status": item.terminal_status,
                "completed_step_ids": completed | {s.id for s in all_steps},
            }
        updated = item.model_copy(update=update)
        entry = self.audit.entry(
            item.id, actor_id, HistoryAction.APPROVE, step=step, feedback=feedback
        )
        committed = await self._repository.commit_transition(updated, item.version, entry)

        if next_step is not None:
            logger.info(f"Item {item.id} advanced from step {step.id} to {next_step.id}")
            await self.notify_assignees(committed, next_step, entry)
        else:
            logger.info(f"Item {item.id} completed its workflow ({committed.status.value})")
            if committed.created_by:
                await dispatch_safely(
                    self._notifier,
                    [committed.created_by],
                    "approved",
                    self._payload(committed, step, entry),
                )
        return committed

    async def advance_with_retry(
        self,
        item_id: str,
        actor_id: str,
        action: Union[ReviewAction, str],
        feedback: Optional[str] = None,
        is_global_admin: bool = False,
    ) -> Item:
        """``advance`` that re-evaluates live state after losing a race."""
        return await retry_on_conflict(
            lambda: self.advance(item_id, actor_id, action, feedback, is_global_admin),
            retries=self._config.conflict_retries,
        )

    # ------------------------------------------------------------------
    async def get_progress(self, item_id: str) -> Progress:
        item = await self.load_item(item_id)
        steps = await self.resolver.steps(item.workflow_id) if item.workflow_id else []
        step_ids = {s.id for s in steps}
        return Progress(
            item_id=item.id,
            current_step_id=item.current_step_id,
            # stale ids from an edited workflow do not count
            completed_count=len(item.completed_step_ids & step_ids),
            total_steps=len(steps),
            is_complete=item.current_step_id is None and item.status.is_terminal,
        )

    async def history(self, item_id: str) -> list[HistoryEntry]:
        item = await self.load_item(item_id)
        return await self.audit.history(item.id)

    async def pending_for(self, user_id: str, brand_id: Optional[str] = None) -> list[Item]:
        """Items currently waiting on ``user_id`` at their active step."""
        items = await self._repository.list_items(
            status=ItemStatus.PENDING_REVIEW, brand_id=brand_id
        )
        return [item for item in items if await self.guard.can_act(item, user_id)]

    # ------------------------------------------------------------------
    async def notify_assignees(
        self, item: Item, step: WorkflowStep, entry: HistoryEntry
    ) -> None:
        try:
            assignees = await self.resolver.resolve_assignees(step, item.brand_id)
        except Exception as e:
            logger.error(f"Could not resolve assignees of step {step.id} for notification: {e}")
            return
        await dispatch_safely(
            self._notifier, assignees, "review_required", self._payload(item, step, entry)
        )

    @staticmethod
    def _payload(item: Item, step: WorkflowStep, entry: HistoryEntry) -> dict:
        return {
            "item_id": item.id,
            "item_type": item.item_type.value,
            "title": item.title,
            "brand_id": item.brand_id,
            "workflow_id": item.workflow_id,
            "step_id": step.id,
            "step_name": step.name,
            "status": item.status.value,
            "actor_id": entry.actor_id,
            "action": entry.action.value,
            "feedback": entry.feedback,
        }
