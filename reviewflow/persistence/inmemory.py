"""In-memory implementation of the item repository."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..errors import ConflictError
from .models import HistoryEntry, Item, ItemStatus, WorkflowDefinition, WorkflowStep
from .repository import ItemRepository


class InMemoryItemRepository(ItemRepository):
    """Store review state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Returned objects are copies, so
    callers cannot mutate stored state without going through
    ``commit_transition``.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowDefinition] = {}
        self._items: Dict[str, Item] = {}
        self._history: Dict[str, List[HistoryEntry]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def save_workflow(self, workflow: WorkflowDefinition) -> None:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition | None:
        wf = self._workflows.get(workflow_id)
        return wf.model_copy(deep=True) if wf else None

    async def list_workflows(
        self, brand_id: Optional[str] = None
    ) -> list[WorkflowDefinition]:
        return [
            wf.model_copy(deep=True)
            for wf in self._workflows.values()
            if brand_id is None or wf.brand_id == brand_id
        ]

    async def get_step(self, step_id: str) -> WorkflowStep | None:
        for wf in self._workflows.values():
            for step in wf.steps:
                if step.id == step_id:
                    return step.model_copy(deep=True)
        return None

    async def update_step_assignees(
        self, step_id: str, assigned_user_ids: list[str]
    ) -> None:
        for wf in self._workflows.values():
            for step in wf.steps:
                if step.id == step_id:
                    step.assigned_user_ids = list(assigned_user_ids)
                    return

    # ------------------------------------------------------------------
    async def create_item(self, item: Item) -> None:
        self._items[item.id] = item.model_copy(deep=True)
        self._history.setdefault(item.id, [])

    async def get_item(self, item_id: str) -> Item | None:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def list_items(
        self, status: Optional[ItemStatus] = None, brand_id: Optional[str] = None
    ) -> list[Item]:
        return [
            item.model_copy(deep=True)
            for item in self._items.values()
            if (status is None or item.status == status)
            and (brand_id is None or item.brand_id == brand_id)
        ]

    async def commit_transition(
        self, item: Item, expected_version: int, entry: HistoryEntry
    ) -> Item:
        async with self._lock:
            stored = self._items.get(item.id)
            if stored is None or stored.version != expected_version:
                raise ConflictError(
                    f"Item {item.id} was modified concurrently; reload and retry.",
                    item_id=item.id,
                )
            committed = item.model_copy(
                deep=True,
                update={
                    "version": expected_version + 1,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
            self._items[item.id] = committed
            self._history.setdefault(item.id, []).append(entry)
        return committed.model_copy(deep=True)

    async def list_history(self, item_id: str) -> list[HistoryEntry]:
        return list(self._history.get(item_id, []))
