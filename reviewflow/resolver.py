"""Workflow step lookup and reviewer resolution."""

from __future__ import annotations

import abc
import logging
from typing import List, Optional, Set

from .identity import RoleDirectory
from .persistence import ItemRepository, WorkflowStep

logger = logging.getLogger(__name__)


class AssigneeStrategy(metaclass=abc.ABCMeta):
    """One way of turning a step into the set of users who may act on it."""

    @abc.abstractmethod
    async def resolve(self, step: WorkflowStep, brand_id: str) -> Set[str]:
        raise NotImplementedError


class ExplicitAssignees(AssigneeStrategy):
    """Users named on the step itself."""

    async def resolve(self, step: WorkflowStep, brand_id: str) -> Set[str]:
        return set(step.assigned_user_ids)


class RoleAssignees(AssigneeStrategy):
    """Everyone holding the step's role on the brand, evaluated live."""

    def __init__(self, directory: RoleDirectory) -> None:
        self._directory = directory

    async def resolve(self, step: WorkflowStep, brand_id: str) -> Set[str]:
        return set(await self._directory.users_with_role(brand_id, step.role))


class StepResolver:
    """Looks up workflow steps and resolves who may review them."""

    def __init__(self, repository: ItemRepository, directory: RoleDirectory) -> None:
        self._repository = repository
        self._explicit = ExplicitAssignees()
        self._by_role = RoleAssignees(directory)

    async def steps(self, workflow_id: str) -> List[WorkflowStep]:
        """Return the steps of ``workflow_id`` in order, empty if unknown."""
        workflow = await self._repository.get_workflow(workflow_id)
        if workflow is None:
            return []
        return workflow.steps

    async def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        return await self._repository.get_step(step_id)

    async def first_step(self, workflow_id: str) -> Optional[WorkflowStep]:
        steps = await self.steps(workflow_id)
        return steps[0] if steps else None

    async def next_step(
        self, workflow_id: str, current_order: int
    ) -> Optional[WorkflowStep]:
        """Return the step with the smallest order above ``current_order``."""
        later = [s for s in await self.steps(workflow_id) if s.order > current_order]
        return min(later, key=lambda s: s.order) if later else None

    def strategy_for(self, step: WorkflowStep) -> AssigneeStrategy:
        return self._explicit if step.assigned_user_ids else self._by_role

    async def resolve_assignees(self, step: WorkflowStep, brand_id: str) -> Set[str]:
        assignees = await self.strategy_for(step).resolve(step, brand_id)
        logger.debug(
            f"Resolved {len(assignees)} assignee(s) for step {step.id} on brand {brand_id}"
        )
        return assignees
