"""Reviewflow: multi-step approval workflows for brand content and claims."""

from .config import ReviewflowConfig, RestartPolicy, load_config
from .contracts import (
    OrphanedAssignment,
    Progress,
    ReassignmentResult,
    ReassignScope,
    ReviewAction,
)
from .engine import TransitionEngine
from .errors import (
    ConflictError,
    DependencyError,
    ItemNotFound,
    ItemRejected,
    NoActiveWorkflowStep,
    NotBrandAdmin,
    NotFoundError,
    NotRejected,
    PermissionDenied,
    ReviewflowError,
    StateError,
    ValidationError,
    WorkflowAlreadyComplete,
    WorkflowNotFound,
)
from .identity import RoleDirectory, StaticRoleDirectory
from .maintenance import OrphanDetector, ReassignmentService
from .notifiers import get_notifier
from .persistence import (
    HistoryAction,
    HistoryEntry,
    Item,
    ItemStatus,
    ItemType,
    WorkflowDefinition,
    WorkflowStep,
    get_repository,
)
from .restart import RestartCoordinator

__version__ = "0.1.0"
__all__ = [
    "ConflictError",
    "DependencyError",
    "HistoryAction",
    "HistoryEntry",
    "Item",
    "ItemNotFound",
    "ItemRejected",
    "ItemStatus",
    "ItemType",
    "NoActiveWorkflowStep",
    "NotBrandAdmin",
    "NotFoundError",
    "NotRejected",
    "OrphanDetector",
    "OrphanedAssignment",
    "PermissionDenied",
    "Progress",
    "ReassignScope",
    "ReassignmentResult",
    "ReassignmentService",
    "RestartCoordinator",
    "RestartPolicy",
    "ReviewAction",
    "ReviewflowConfig",
    "ReviewflowError",
    "RoleDirectory",
    "StateError",
    "StaticRoleDirectory",
    "TransitionEngine",
    "ValidationError",
    "WorkflowAlreadyComplete",
    "WorkflowDefinition",
    "WorkflowNotFound",
    "WorkflowStep",
    "get_notifier",
    "get_repository",
    "load_config",
]
