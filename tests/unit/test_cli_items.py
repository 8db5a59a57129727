import asyncio

import pytest
from typer.testing import CliRunner

import reviewflow.persistence as persistence
from reviewflow.cli import app
from reviewflow.persistence import (
    InMemoryItemRepository,
    Item,
    ItemStatus,
    WorkflowDefinition,
    WorkflowStep,
)

CONFIG = """
notifier:
  backend: inmemory
directory:
  global_admins: [root]
  brands:
    b1:
      U1: [editor]
      U2: [admin]
      gone: []
"""


@pytest.fixture
def repo(tmp_path, monkeypatch):
    config_path = tmp_path / "reviewflow.yaml"
    config_path.write_text(CONFIG)
    monkeypatch.setenv("REVIEWFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("REVIEWFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("REVIEWFLOW_NOTIFIER", raising=False)

    repo = InMemoryItemRepository()
    asyncio.run(
        repo.save_workflow(
            WorkflowDefinition(
                id="wf1",
                brand_id="b1",
                name="Blog",
                steps=[
                    WorkflowStep(id="s0", workflow_id="wf1", order=0, name="Edit", role="editor"),
                    WorkflowStep(
                        id="s1",
                        workflow_id="wf1",
                        order=1,
                        name="Sign-off",
                        role="admin",
                        assigned_user_ids=["U2", "gone"],
                    ),
                ],
            )
        )
    )
    persistence._repository_instance = repo
    yield repo
    persistence._repository_instance = None


def _create(runner: CliRunner) -> str:
    result = runner.invoke(app, ["item", "create", "b1", "wf1", "--actor", "owner"])
    assert result.exit_code == 0, result.output
    # "Created item <id>: pending_review"
    return result.output.split("Created item ")[1].split(":")[0]


def test_item_approval_flow(repo):
    runner = CliRunner()
    item_id = _create(runner)

    result = runner.invoke(app, ["item", "approve", item_id, "--actor", "U1"])
    assert result.exit_code == 0, result.output
    assert "pending_review" in result.output

    result = runner.invoke(app, ["item", "show", item_id])
    assert result.exit_code == 0, result.output
    assert "Current step: s1 (Sign-off)" in result.output
    assert "Completed steps: s0" in result.output

    result = runner.invoke(app, ["item", "approve", item_id, "--actor", "U2"])
    assert result.exit_code == 0, result.output
    assert "approved" in result.output

    result = runner.invoke(app, ["item", "progress", item_id])
    assert "2/2 steps completed (complete)" in result.output

    result = runner.invoke(app, ["item", "history", item_id])
    lines = [line for line in result.output.splitlines() if "\t" in line]
    assert [line.split("\t")[1] for line in lines] == ["start", "approve", "approve"]


def test_business_errors_exit_with_code_one(repo):
    runner = CliRunner()
    item_id = _create(runner)

    result = runner.invoke(app, ["item", "approve", item_id, "--actor", "U2"])
    assert result.exit_code == 1
    assert "not an assignee" in result.output

    result = runner.invoke(app, ["item", "reject", item_id, "--actor", "U1"])
    assert result.exit_code == 1
    assert "Feedback is required" in result.output

    result = runner.invoke(app, ["item", "show", "missing"])
    assert result.exit_code == 1
    assert "not found" in result.output

    stored = asyncio.run(repo.get_item(item_id))
    assert stored.status == ItemStatus.PENDING_REVIEW
    assert stored.version == 1


def test_reject_and_restart(repo):
    runner = CliRunner()
    item_id = _create(runner)

    result = runner.invoke(
        app, ["item", "reject", item_id, "--actor", "U1", "--feedback", "Off-brand tone"]
    )
    assert result.exit_code == 0, result.output
    assert "rejected" in result.output

    result = runner.invoke(app, ["item", "restart", item_id, "--actor", "U1"])
    assert result.exit_code == 1
    assert "not an administrator" in result.output

    result = runner.invoke(app, ["item", "restart", item_id, "--actor", "root", "--admin"])
    assert result.exit_code == 0, result.output
    assert "pending_review" in result.output


def test_assignment_maintenance_commands(repo):
    runner = CliRunner()

    result = runner.invoke(app, ["assignments", "orphans", "--brand", "b1"])
    assert result.exit_code == 0, result.output
    assert "s1\tgone" in result.output

    result = runner.invoke(app, ["assignments", "reassign", "gone", "U1"])
    assert result.exit_code == 1
    assert "exactly one" in result.output

    result = runner.invoke(
        app, ["assignments", "reassign", "gone", "nobody", "--workflow", "wf1"]
    )
    assert result.exit_code == 1
    assert "must have access" in result.output

    result = runner.invoke(app, ["assignments", "reassign", "gone", "U1", "--brand", "b1"])
    assert result.exit_code == 0, result.output
    assert "in 1 workflow(s)" in result.output
    step = asyncio.run(repo.get_step("s1"))
    assert step.assigned_user_ids == ["U2", "U1"]

    result = runner.invoke(app, ["assignments", "orphans"])
    assert "No orphaned assignments found" in result.output


def test_assignments_leave_items_alone(repo):
    asyncio.run(
        repo.create_item(
            Item(
                id="i1",
                brand_id="b1",
                workflow_id="wf1",
                current_step_id="s1",
                status=ItemStatus.PENDING_REVIEW,
            )
        )
    )
    runner = CliRunner()

    runner.invoke(app, ["assignments", "reassign", "gone", "U1", "--brand", "b1"])

    stored = asyncio.run(repo.get_item("i1"))
    assert stored.version == 0
    assert stored.current_step_id == "s1"
