"""Data models for persisted review state."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ItemType(str, Enum):
    CONTENT = "content"
    CLAIM = "claim"


class ItemStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.APPROVED, ItemStatus.COMPLETED)


class HistoryAction(str, Enum):
    START = "start"
    APPROVE = "approve"
    REJECT = "reject"
    RESTART = "restart"


class WorkflowStep(BaseModel):
    """One review stage of a workflow."""

    id: str = Field(default_factory=_new_id)
    workflow_id: str
    order: int
    name: str = ""
    role: str
    assigned_user_ids: List[str] = Field(default_factory=list)


class WorkflowDefinition(BaseModel):
    """Ordered template of review steps for a brand."""

    id: str = Field(default_factory=_new_id)
    brand_id: str
    name: str = ""
    steps: List[WorkflowStep] = Field(default_factory=list)

    @field_validator("steps")
    @classmethod
    def _sort_steps(cls, v: List[WorkflowStep]) -> List[WorkflowStep]:
        return sorted(v, key=lambda s: s.order)

    @model_validator(mode="after")
    def _check_steps(self) -> "WorkflowDefinition":
        orders = [s.order for s in self.steps]
        if orders and orders != list(range(orders[0], orders[0] + len(orders))):
            raise ValueError(
                f"step orders must be contiguous and unique, got {orders}"
            )
        for step in self.steps:
            if step.workflow_id != self.id:
                raise ValueError(
                    f"step {step.id} belongs to workflow {step.workflow_id}, not {self.id}"
                )
        return self

    @property
    def step_ids(self) -> Set[str]:
        return {s.id for s in self.steps}


class Item(BaseModel):
    """A content or claim record moving through a workflow."""

    id: str = Field(default_factory=_new_id)
    item_type: ItemType = ItemType.CONTENT
    brand_id: str
    title: str = ""
    created_by: Optional[str] = None
    workflow_id: Optional[str] = None
    current_step_id: Optional[str] = None
    status: ItemStatus = ItemStatus.DRAFT
    completed_step_ids: Set[str] = Field(default_factory=set)
    version: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def terminal_status(self) -> ItemStatus:
        """Status an item of this type reaches after its final approval."""
        if self.item_type == ItemType.CLAIM:
            return ItemStatus.COMPLETED
        return ItemStatus.APPROVED


class HistoryEntry(BaseModel):
    """Immutable audit record of a single transition."""

    id: str = Field(default_factory=_new_id)
    item_id: str
    step_id: Optional[str] = None
    step_name: Optional[str] = None
    actor_id: str
    action: HistoryAction
    feedback: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}
