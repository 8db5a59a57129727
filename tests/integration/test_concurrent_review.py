import asyncio

import pytest

from reviewflow import (
    ConflictError,
    Item,
    PermissionDenied,
    ReviewflowConfig,
    StaticRoleDirectory,
    TransitionEngine,
    WorkflowDefinition,
    WorkflowStep,
)
from reviewflow.persistence import HistoryAction, InMemoryItemRepository, SQLiteItemRepository


class GatedRepository:
    """Holds every ``get_item`` until ``parties`` callers have loaded the item.

    Forces concurrent transitions to read the same version before either
    commits.
    """

    def __init__(self, inner, parties: int = 2):
        self._inner = inner
        self._parties = parties
        self._arrived = 0
        self._released = asyncio.Event()
        self.armed = False

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def get_item(self, item_id: str) -> Item | None:
        item = await self._inner.get_item(item_id)
        if self.armed:
            self._arrived += 1
            if self._arrived >= self._parties:
                self._released.set()
            await self._released.wait()
        return item


async def _setup(inner):
    repo = GatedRepository(inner)
    await repo.save_workflow(
        WorkflowDefinition(
            id="wf1",
            brand_id="b1",
            steps=[
                WorkflowStep(id="s0", workflow_id="wf1", order=0, role="editor"),
                WorkflowStep(
                    id="s1",
                    workflow_id="wf1",
                    order=1,
                    role="admin",
                    assigned_user_ids=["boss"],
                ),
            ],
        )
    )
    directory = StaticRoleDirectory({"b1": {"ed1": ["editor"], "ed2": ["editor"]}})
    engine = TransitionEngine(repo, directory, config=ReviewflowConfig())
    item = await engine.create_item("b1", "wf1", "owner")
    repo.armed = True
    return engine, repo, item


@pytest.fixture(params=["inmemory", "sqlite"])
def backend(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteItemRepository(tmp_path / "reviews.db")
    return InMemoryItemRepository()


@pytest.mark.asyncio
async def test_concurrent_approvals_yield_one_conflict(backend):
    engine, repo, item = await _setup(backend)

    results = await asyncio.gather(
        engine.advance(item.id, "ed1", "approve"),
        engine.advance(item.id, "ed2", "approve"),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, Item)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert conflicts[0].retryable

    stored = await repo.get_item(item.id)
    assert stored.current_step_id == "s1"
    assert stored.completed_step_ids == {"s0"}
    assert stored.version == 2
    history = await engine.history(item.id)
    assert [h.action for h in history] == [HistoryAction.START, HistoryAction.APPROVE]


@pytest.mark.asyncio
async def test_retry_after_conflict_sees_live_state(backend):
    engine, repo, item = await _setup(backend)

    results = await asyncio.gather(
        engine.advance_with_retry(item.id, "ed1", "approve"),
        engine.advance_with_retry(item.id, "ed2", "approve"),
        return_exceptions=True,
    )

    # the loser retries against step s1, where only "boss" may act
    assert sum(isinstance(r, Item) for r in results) == 1
    assert sum(isinstance(r, PermissionDenied) for r in results) == 1
    assert len(await engine.history(item.id)) == 2
