"""Command line interface for reviewing items and maintaining assignments."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

import typer
import yaml

from reviewflow import (
    DependencyError,
    OrphanDetector,
    ReassignmentService,
    ReassignScope,
    RestartCoordinator,
    ReviewflowError,
    StaticRoleDirectory,
    TransitionEngine,
    WorkflowDefinition,
    get_notifier,
    get_repository,
    load_config,
)

T = TypeVar("T")

app = typer.Typer(help="CLI for reviewflow approval workflows")

# Command groups
item_app = typer.Typer(help="Commands for reviewing items")
workflow_app = typer.Typer(help="Commands for managing workflow definitions")
assignments_app = typer.Typer(help="Commands for maintaining step assignments")

app.add_typer(item_app, name="item")
app.add_typer(workflow_app, name="workflow")
app.add_typer(assignments_app, name="assignments")


class _Services:
    def __init__(self) -> None:
        self.config = load_config()
        self.repository = get_repository()
        self.directory = StaticRoleDirectory.from_config(self.config.directory)
        self.notifier = get_notifier(config=self.config)
        self.engine = TransitionEngine(
            self.repository, self.directory, self.notifier, self.config
        )


def _run(operation: Callable[[_Services], Awaitable[T]]) -> T:
    """Run ``operation`` against freshly built services.

    Business errors are printed in red and turn into exit code 1.
    """

    async def runner(services: _Services) -> T:
        try:
            return await operation(services)
        finally:
            await services.notifier.disconnect()

    try:
        try:
            services = _Services()
        except ValueError as e:
            # unsupported backend or incomplete notifier settings
            raise DependencyError(f"Invalid configuration: {e}")
        return asyncio.run(runner(services))
    except ReviewflowError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Reviewflow CLI entry point."""
    level = "DEBUG" if verbose else load_config().log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ----------------------------------------------------------------------
# item


@item_app.command("create")
def item_create(
    brand_id: str,
    workflow_id: str,
    actor: str = typer.Option(..., "--actor", help="User creating the item"),
    title: str = typer.Option("", help="Item title"),
    item_type: str = typer.Option("content", "--type", help="content or claim"),
) -> None:
    """
    Create an item and place it at the first step of its workflow.

    Example:
        reviewflow item create brand-1 wf-blog --actor u1 --title "Launch post"
    """
    item = _run(
        lambda s: s.engine.create_item(
            brand_id, workflow_id, actor, item_type=item_type, title=title
        )
    )
    typer.echo(f"Created item {item.id}: {item.status.value}")


@item_app.command("show")
def item_show(item_id: str) -> None:
    """
    Show an item's status, current step and completed steps.

    Example:
        reviewflow item show 3f2a...
        # Output: Item 3f2a... (content): pending_review
        #         Workflow: wf-blog
        #         Current step: s1 (Legal review)
    """

    async def show(s: _Services):
        item = await s.engine.load_item(item_id)
        step = (
            await s.engine.resolver.get_step(item.current_step_id)
            if item.current_step_id
            else None
        )
        return item, step

    item, step = _run(show)
    typer.echo(f"Item {item.id} ({item.item_type.value}): {item.status.value}")
    if item.title:
        typer.echo(f"Title: {item.title}")
    typer.echo(f"Workflow: {item.workflow_id or '(none)'}")
    if step is not None:
        typer.echo(f"Current step: {step.id} ({step.name or 'order ' + str(step.order)})")
    else:
        typer.echo("Current step: (none)")
    completed = ", ".join(sorted(item.completed_step_ids)) or "(none)"
    typer.echo(f"Completed steps: {completed}")


@item_app.command("history")
def item_history(item_id: str) -> None:
    """List the audit history of an item, oldest first."""
    entries = _run(lambda s: s.engine.history(item_id))
    if not entries:
        typer.echo("No history recorded")
        return
    for entry in entries:
        line = f"{entry.created_at.isoformat()}\t{entry.action.value}\t{entry.actor_id}"
        if entry.step_name or entry.step_id:
            line += f"\t{entry.step_name or entry.step_id}"
        if entry.feedback:
            line += f"\t{entry.feedback}"
        typer.echo(line)


@item_app.command("progress")
def item_progress(item_id: str) -> None:
    """Show how many workflow steps an item has completed."""
    progress = _run(lambda s: s.engine.get_progress(item_id))
    state = "complete" if progress.is_complete else "in progress"
    typer.echo(
        f"{progress.completed_count}/{progress.total_steps} steps completed ({state})"
    )


@item_app.command("approve")
def item_approve(
    item_id: str,
    actor: str = typer.Option(..., "--actor", help="Reviewer approving the step"),
    feedback: Optional[str] = typer.Option(None, help="Optional reviewer comment"),
    admin: bool = typer.Option(False, "--admin", help="Act as a global admin"),
) -> None:
    """
    Approve the item's current step.

    Example:
        reviewflow item approve 3f2a... --actor u1
    """
    item = _run(
        lambda s: s.engine.advance_with_retry(item_id, actor, "approve", feedback, admin)
    )
    typer.echo(f"Item {item.id}: {item.status.value}")


@item_app.command("reject")
def item_reject(
    item_id: str,
    actor: str = typer.Option(..., "--actor", help="Reviewer rejecting the step"),
    feedback: Optional[str] = typer.Option(None, help="Reason for the rejection"),
    admin: bool = typer.Option(False, "--admin", help="Act as a global admin"),
) -> None:
    """Reject the item at its current step."""
    item = _run(
        lambda s: s.engine.advance_with_retry(item_id, actor, "reject", feedback, admin)
    )
    typer.echo(f"Item {item.id}: {item.status.value}")


@item_app.command("restart")
def item_restart(
    item_id: str,
    actor: str = typer.Option(..., "--actor", help="Brand admin restarting the item"),
    admin: bool = typer.Option(False, "--admin", help="Act as a global admin"),
) -> None:
    """Put a rejected item back at the first step of its workflow."""

    async def restart(s: _Services):
        coordinator = RestartCoordinator(s.engine, s.directory)
        return await coordinator.restart(item_id, actor, is_global_admin=admin)

    item = _run(restart)
    typer.echo(f"Item {item.id}: {item.status.value}")


# ----------------------------------------------------------------------
# workflow


@workflow_app.command("load")
def workflow_load(path: Path) -> None:
    """
    Load workflow definitions from a YAML file.

    The file holds a ``workflows`` list; each entry has ``id``, ``brand_id``,
    ``name`` and ordered ``steps`` with ``order``, ``name``, ``role`` and
    ``assigned_user_ids``.
    """
    if not path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    definitions: List[WorkflowDefinition] = []
    try:
        for raw in data.get("workflows", []):
            steps = [dict(step, workflow_id=raw["id"]) for step in raw.get("steps", [])]
            definitions.append(WorkflowDefinition(**dict(raw, steps=steps)))
    except (KeyError, ValueError) as exc:
        typer.secho(f"Invalid workflow file {path}: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def load(s: _Services):
        for definition in definitions:
            await s.repository.save_workflow(definition)

    _run(load)
    typer.echo(f"Loaded {len(definitions)} workflow(s)")


@workflow_app.command("list")
def workflow_list(brand: Optional[str] = typer.Option(None, help="Only this brand")) -> None:
    """List workflow definitions and their step counts."""
    workflows = _run(lambda s: s.repository.list_workflows(brand))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.id}\t{wf.brand_id}\t{wf.name}\t{len(wf.steps)} step(s)")


# ----------------------------------------------------------------------
# assignments


@assignments_app.command("orphans")
def assignments_orphans(
    brand: Optional[str] = typer.Option(None, help="Only scan this brand"),
) -> None:
    """List explicit step assignees who no longer have access to the brand."""
    orphans = _run(
        lambda s: OrphanDetector(s.repository, s.directory).find_orphaned_assignments(brand)
    )
    if not orphans:
        typer.echo("No orphaned assignments found")
        return
    for orphan in orphans:
        typer.echo(
            f"{orphan.brand_id}\t{orphan.workflow_id}\t{orphan.step_id}\t{orphan.user_id}"
        )


@assignments_app.command("reassign")
def assignments_reassign(
    from_user: str,
    to_user: str,
    brand: Optional[str] = typer.Option(None, help="Reassign across this brand"),
    workflow: Optional[List[str]] = typer.Option(
        None, help="Reassign within these workflows (repeatable)"
    ),
) -> None:
    """
    Move explicit step assignments from one user to another.

    Example:
        reviewflow assignments reassign u1 u3 --brand brand-1
        reviewflow assignments reassign u1 u3 --workflow wf-blog --workflow wf-claims
    """

    async def reassign(s: _Services):
        scope = ReassignScope(brand_id=brand, workflow_ids=workflow or [])
        service = ReassignmentService(s.repository, s.directory)
        return await service.reassign_detailed(from_user, to_user, scope)

    results = _run(reassign)
    for result in results:
        typer.echo(
            f"{result.workflow_id}\t{result.workflow_name}\t{result.steps_updated} step(s)"
        )
    typer.echo(f"Reassigned {from_user} -> {to_user} in {len(results)} workflow(s)")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
