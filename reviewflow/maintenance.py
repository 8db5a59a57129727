"""Out-of-band repair of stale explicit step assignments.

Explicit ``assigned_user_ids`` lists are not re-checked when brand
permissions change, so a reviewer who lost access can stay listed on a
step. ``OrphanDetector`` finds those entries and ``ReassignmentService``
rewrites them. Neither touches items; an item's current step is left as is
and the next resolution simply sees the new list.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from .contracts import OrphanedAssignment, ReassignmentResult, ReassignScope
from .errors import ValidationError, require
from .identity import RoleDirectory
from .persistence import ItemRepository, WorkflowDefinition

logger = logging.getLogger(__name__)


class OrphanDetector:
    """Finds explicit step assignees without access to the workflow's brand."""

    def __init__(self, repository: ItemRepository, directory: RoleDirectory) -> None:
        self._repository = repository
        self._directory = directory

    async def find_orphaned_assignments(
        self, brand_id: Optional[str] = None
    ) -> List[OrphanedAssignment]:
        workflows = await self._repository.list_workflows(brand_id)
        access: Dict[tuple, bool] = {}
        admins: Dict[str, bool] = {}
        orphans: List[OrphanedAssignment] = []

        for workflow in workflows:
            for step in workflow.steps:
                for user_id in step.assigned_user_ids:
                    if user_id not in admins:
                        admins[user_id] = await self._directory.is_global_admin(user_id)
                    if admins[user_id]:
                        continue
                    key = (workflow.brand_id, user_id)
                    if key not in access:
                        access[key] = await self._directory.has_brand_access(
                            user_id, workflow.brand_id
                        )
                    if not access[key]:
                        orphans.append(
                            OrphanedAssignment(
                                workflow_id=workflow.id,
                                step_id=step.id,
                                user_id=user_id,
                                brand_id=workflow.brand_id,
                            )
                        )

        if orphans:
            logger.warning(
                f"Found {len(orphans)} orphaned assignment(s) across "
                f"{len({o.workflow_id for o in orphans})} workflow(s)"
            )
        else:
            logger.info(f"No orphaned assignments in {len(workflows)} workflow(s)")
        return orphans


class ReassignmentService:
    """Moves explicit step assignments from one user to another."""

    def __init__(self, repository: ItemRepository, directory: RoleDirectory) -> None:
        self._repository = repository
        self._directory = directory

    async def _workflows_in_scope(self, scope: ReassignScope) -> List[WorkflowDefinition]:
        if bool(scope.brand_id) == bool(scope.workflow_ids):
            raise ValidationError(
                "Specify exactly one of brand_id or workflow_ids for a reassignment"
            )
        if scope.brand_id:
            return await self._repository.list_workflows(scope.brand_id)
        workflows: List[WorkflowDefinition] = []
        for workflow_id in dict.fromkeys(scope.workflow_ids):
            workflow = await self._repository.get_workflow(workflow_id)
            if workflow is None:
                logger.warning(f"Skipping unknown workflow {workflow_id}")
                continue
            workflows.append(workflow)
        return workflows

    async def reassign(
        self, from_user_id: str, to_user_id: str, scope: ReassignScope
    ) -> int:
        """Return the number of workflows whose assignments were rewritten."""
        results = await self.reassign_detailed(from_user_id, to_user_id, scope)
        return len(results)

    async def reassign_detailed(
        self, from_user_id: str, to_user_id: str, scope: ReassignScope
    ) -> List[ReassignmentResult]:
        from_user_id = require(from_user_id, "from_user_id")
        to_user_id = require(to_user_id, "to_user_id")
        if from_user_id == to_user_id:
            raise ValidationError("Cannot reassign to the same user")

        workflows = await self._workflows_in_scope(scope)
        brands: Set[str] = {wf.brand_id for wf in workflows}
        if not await self._directory.is_global_admin(to_user_id):
            for brand in sorted(brands):
                if not await self._directory.has_brand_access(to_user_id, brand):
                    logger.warning(
                        f"Reassignment blocked: {to_user_id} has no access to brand {brand}"
                    )
                    raise ValidationError(
                        f"Destination user must have access to brand {brand} before reassignment"
                    )

        results: List[ReassignmentResult] = []
        for workflow in workflows:
            changes = []
            for step in workflow.steps:
                if from_user_id not in step.assigned_user_ids:
                    continue
                updated = [u for u in step.assigned_user_ids if u != from_user_id]
                if to_user_id not in updated:
                    updated.append(to_user_id)
                changes.append((step.id, updated))
            if not changes:
                continue

            try:
                for step_id, assigned in changes:
                    await self._repository.update_step_assignees(step_id, assigned)
            except Exception as e:
                logger.error(f"Failed to reassign steps of workflow {workflow.id}: {e}")
                continue

            results.append(
                ReassignmentResult(
                    workflow_id=workflow.id,
                    workflow_name=workflow.name,
                    steps_updated=len(changes),
                )
            )

        logger.info(
            f"Reassigned {from_user_id} -> {to_user_id} in {len(results)} of "
            f"{len(workflows)} workflow(s)"
        )
        return results
