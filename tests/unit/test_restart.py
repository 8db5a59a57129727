import pytest

from reviewflow import (
    ItemStatus,
    NotBrandAdmin,
    NotRejected,
    RestartCoordinator,
    RestartPolicy,
    ReviewflowConfig,
    StaticRoleDirectory,
    TransitionEngine,
    ValidationError,
    WorkflowDefinition,
    WorkflowStep,
)
from reviewflow.notifiers import InMemoryNotifier
from reviewflow.persistence import HistoryAction, InMemoryItemRepository


def _three_step_workflow() -> WorkflowDefinition:
    return WorkflowDefinition(
        id="wf1",
        brand_id="b1",
        steps=[
            WorkflowStep(id=f"s{i}", workflow_id="wf1", order=i, role="reviewer")
            for i in range(3)
        ],
    )


async def _rejected_item(policy: RestartPolicy = RestartPolicy.PRESERVE):
    repo = InMemoryItemRepository()
    await repo.save_workflow(_three_step_workflow())
    directory = StaticRoleDirectory(
        {"b1": {"rev": ["reviewer"], "boss": ["admin"]}}
    )
    notifier = InMemoryNotifier()
    engine = TransitionEngine(
        repo, directory, notifier, ReviewflowConfig(restart_policy=policy)
    )
    item = await engine.create_item("b1", "wf1", "owner")
    await engine.advance(item.id, "rev", "approve")
    await engine.advance(item.id, "rev", "approve")
    item = await engine.advance(item.id, "rev", "reject", feedback="wrong claim")
    return engine, directory, notifier, item


@pytest.mark.asyncio
async def test_restart_preserves_completed_steps_by_default():
    engine, directory, notifier, item = await _rejected_item()
    coordinator = RestartCoordinator(engine, directory)
    assert coordinator.policy == RestartPolicy.PRESERVE

    restarted = await coordinator.restart(item.id, "boss")

    assert restarted.status == ItemStatus.PENDING_REVIEW
    assert restarted.current_step_id == "s0"
    assert restarted.completed_step_ids == {"s0", "s1"}
    latest = await engine.audit.latest(item.id)
    assert latest.action == HistoryAction.RESTART
    assert latest.actor_id == "boss"
    assert notifier.events("review_required")[-1].user_ids == ["rev"]


@pytest.mark.asyncio
async def test_restart_reset_policy_clears_completed_steps():
    engine, directory, notifier, item = await _rejected_item(RestartPolicy.RESET)

    restarted = await RestartCoordinator(engine, directory).restart(item.id, "boss")

    assert restarted.current_step_id == "s0"
    assert restarted.completed_step_ids == set()
    progress = await engine.get_progress(item.id)
    assert progress.completed_count == 0


@pytest.mark.asyncio
async def test_restart_requires_brand_admin():
    engine, directory, notifier, item = await _rejected_item()
    coordinator = RestartCoordinator(engine, directory)

    with pytest.raises(NotBrandAdmin):
        await coordinator.restart(item.id, "rev")

    restarted = await coordinator.restart(item.id, "root", is_global_admin=True)
    assert restarted.status == ItemStatus.PENDING_REVIEW


@pytest.mark.asyncio
async def test_restart_of_non_rejected_item_writes_nothing():
    engine, directory, notifier, item = await _rejected_item()
    coordinator = RestartCoordinator(engine, directory)
    await coordinator.restart(item.id, "boss")
    history_before = await engine.history(item.id)

    with pytest.raises(NotRejected):
        await coordinator.restart(item.id, "boss")

    assert await engine.history(item.id) == history_before


@pytest.mark.asyncio
async def test_reapproving_preserved_step_adds_history_only():
    engine, directory, notifier, item = await _rejected_item()
    await RestartCoordinator(engine, directory).restart(item.id, "boss")

    item = await engine.advance(item.id, "rev", "approve")

    assert item.current_step_id == "s1"
    assert item.completed_step_ids == {"s0", "s1"}
    history = await engine.history(item.id)
    assert [h.action for h in history].count(HistoryAction.APPROVE) == 3


@pytest.mark.asyncio
async def test_restart_requires_actor():
    engine, directory, notifier, item = await _rejected_item()
    coordinator = RestartCoordinator(engine, directory)
    history_before = await engine.history(item.id)

    for actor in ("", "   ", None):
        with pytest.raises(ValidationError):
            await coordinator.restart(item.id, actor, is_global_admin=True)

    stored = await engine.load_item(item.id)
    assert stored.status == ItemStatus.REJECTED
    assert await engine.history(item.id) == history_before
