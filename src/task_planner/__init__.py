"""Provide the public `task_planner` package exports."""

from __future__ import annotations

from .task_engine.engine import LinkRejected, TaskEngine
from .task_engine.graph import build_lookup, would_create_cycle
from .task_engine.links import link_pair, unlink_pair
from .task_engine.model import Task
from .task_engine.policy import (
    DEFAULT_POLICY_CONFIG,
    CrossKindRule,
    DependencyPolicy,
    LinkCheck,
    PolicyConfig,
    can_link,
)
from .task_engine.suggest import suggest_candidates

__all__ = [
    "DEFAULT_POLICY_CONFIG",
    "CrossKindRule",
    "DependencyPolicy",
    "LinkCheck",
    "LinkRejected",
    "PolicyConfig",
    "Task",
    "TaskEngine",
    "build_lookup",
    "can_link",
    "link_pair",
    "suggest_candidates",
    "unlink_pair",
    "would_create_cycle",
]
