"""Repository abstraction for review state persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from .models import HistoryEntry, Item, ItemStatus, WorkflowDefinition, WorkflowStep


class ItemRepository(Protocol):
    """Protocol for review state persistence backends.

    Backends raise :class:`reviewflow.errors.DependencyError` when the store
    cannot be reached and :class:`reviewflow.errors.ConflictError` when
    ``commit_transition`` loses a version race.
    """

    async def save_workflow(self, workflow: WorkflowDefinition) -> None:
        """Persist a workflow definition and its steps."""

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        """Retrieve a workflow definition with steps sorted by order."""

    async def list_workflows(
        self, brand_id: Optional[str] = None
    ) -> list[WorkflowDefinition]:
        """Return all workflows, optionally limited to one brand."""

    async def get_step(self, step_id: str) -> WorkflowStep | None:
        """Retrieve a single workflow step."""

    async def update_step_assignees(
        self, step_id: str, assigned_user_ids: list[str]
    ) -> None:
        """Replace the explicit assignee list of a step."""

    async def create_item(self, item: Item) -> None:
        """Persist a new item."""

    async def get_item(self, item_id: str) -> Item | None:
        """Retrieve an item together with its current version."""

    async def list_items(
        self, status: Optional[ItemStatus] = None, brand_id: Optional[str] = None
    ) -> list[Item]:
        """Return items filtered by status and brand."""

    async def commit_transition(
        self, item: Item, expected_version: int, entry: HistoryEntry
    ) -> Item:
        """Atomically store ``item`` and append ``entry``.

        The write only succeeds if the stored version still equals
        ``expected_version``; the stored item gets ``expected_version + 1``.
        """

    async def list_history(self, item_id: str) -> list[HistoryEntry]:
        """Return the history of an item, oldest first."""
