"""Request and result contracts exposed by reviewflow."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .errors import ValidationError


class ReviewAction(str, Enum):
    """Actions a reviewer can take on the current step."""

    APPROVE = "approve"
    REJECT = "reject"


class Progress(BaseModel):
    """How far an item has travelled through its workflow."""

    item_id: str
    current_step_id: Optional[str] = None
    completed_count: int = 0
    total_steps: int = 0
    is_complete: bool = False


class OrphanedAssignment(BaseModel):
    """An explicit step assignee who no longer has access to the brand."""

    workflow_id: str
    step_id: str
    user_id: str
    brand_id: Optional[str] = None


class ReassignScope(BaseModel):
    """Which workflows a reassignment may touch.

    Exactly one of ``brand_id`` or ``workflow_ids`` must be given.
    """

    brand_id: Optional[str] = None
    workflow_ids: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_scope(self) -> "ReassignScope":
        # not a ValueError, so pydantic raises it unwrapped
        if bool(self.brand_id) == bool(self.workflow_ids):
            raise ValidationError(
                "Specify exactly one of brand_id or workflow_ids for a reassignment"
            )
        return self


class ReassignmentResult(BaseModel):
    """Outcome of rewriting one workflow's step assignees."""

    workflow_id: str
    workflow_name: str = ""
    steps_updated: int = 0
