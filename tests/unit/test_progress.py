import pytest

from reviewflow import (
    ReviewflowConfig,
    StaticRoleDirectory,
    TransitionEngine,
    WorkflowDefinition,
    WorkflowStep,
)
from reviewflow.persistence import InMemoryItemRepository, Item, ItemStatus


def _steps(wf_id: str, count: int):
    return [
        WorkflowStep(id=f"{wf_id}-s{i}", workflow_id=wf_id, order=i, role="reviewer")
        for i in range(count)
    ]


async def _engine():
    repo = InMemoryItemRepository()
    await repo.save_workflow(
        WorkflowDefinition(id="wf", brand_id="b1", steps=_steps("wf", 3))
    )
    directory = StaticRoleDirectory({"b1": {"rev": ["reviewer"]}})
    return TransitionEngine(repo, directory, config=ReviewflowConfig()), repo


@pytest.mark.asyncio
async def test_progress_counts_completed_steps():
    engine, repo = await _engine()
    item = await engine.create_item("b1", "wf", "owner")

    progress = await engine.get_progress(item.id)
    assert (progress.completed_count, progress.total_steps) == (0, 3)
    assert progress.current_step_id == "wf-s0"
    assert not progress.is_complete

    for _ in range(3):
        await engine.advance(item.id, "rev", "approve")

    progress = await engine.get_progress(item.id)
    assert (progress.completed_count, progress.total_steps) == (3, 3)
    assert progress.current_step_id is None
    assert progress.is_complete


@pytest.mark.asyncio
async def test_progress_ignores_stale_step_ids():
    engine, repo = await _engine()
    await repo.create_item(
        Item(
            id="i1",
            brand_id="b1",
            workflow_id="wf",
            current_step_id="wf-s2",
            status=ItemStatus.PENDING_REVIEW,
            completed_step_ids={"wf-s0", "wf-s1", "removed-step"},
        )
    )

    progress = await engine.get_progress("i1")

    assert progress.completed_count == 2
    assert progress.total_steps == 3


@pytest.mark.asyncio
async def test_progress_without_workflow():
    engine, repo = await _engine()
    await repo.create_item(Item(id="loose", brand_id="b1"))

    progress = await engine.get_progress("loose")

    assert progress.total_steps == 0
    assert progress.completed_count == 0
    assert not progress.is_complete
