from __future__ import annotations

import os
from enum import Enum
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field


class RestartPolicy(str, Enum):
    """What happens to completed steps when a rejected item restarts."""

    PRESERVE = "preserve"
    RESET = "reset"


class RedisConfig(BaseModel):
    """Configuration for the Redis notifier."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    queue: str = "reviewflow:notifications"


class WebhookConfig(BaseModel):
    """Configuration for the HTTP webhook notifier."""

    url: Optional[str] = None
    timeout: float = 5.0
    headers: Dict[str, str] = Field(default_factory=dict)


class NotifierConfig(BaseModel):
    """Notification dispatch settings."""

    backend: Literal["inmemory", "log", "redis", "webhook"] = "log"
    redis: RedisConfig = RedisConfig()
    webhook: WebhookConfig = WebhookConfig()


class DirectoryConfig(BaseModel):
    """Static role grants used when no identity provider is wired in.

    ``brands`` maps brand id -> user id -> list of roles held on that brand.
    """

    global_admins: List[str] = Field(default_factory=list)
    brands: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)
    admin_role: str = "admin"


class ReviewflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    restart_policy: RestartPolicy = RestartPolicy.PRESERVE
    require_rejection_feedback: bool = True
    conflict_retries: int = 1
    log_level: str = "INFO"
    notifier: NotifierConfig = NotifierConfig()
    directory: DirectoryConfig = DirectoryConfig()


def load_config(path: Optional[str] = None) -> ReviewflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to REVIEWFLOW_CONFIG env
            variable or 'reviewflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("REVIEWFLOW_CONFIG", "reviewflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ReviewflowConfig(**data)
    else:
        config = ReviewflowConfig()

    env_db_url = os.getenv("REVIEWFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_notifier = os.getenv("REVIEWFLOW_NOTIFIER")
    if env_notifier:
        config.notifier.backend = env_notifier.lower()
    return config
