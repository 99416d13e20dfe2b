"""Linking policy: which tasks may block which.

The domain gate is applied before any policy: two tasks that both declare a
domain can only be linked when the domains match.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .model import Task


class DependencyPolicy(str, Enum):
    """Closed set of linking policies, from most to least restrictive."""

    STRICT_SAME_KIND = "StrictSameKind"
    SAME_EPIC_OR_SAME_KIND = "SameEpicOrSameKind"
    WHITELIST_CROSS_KIND = "WhitelistCrossKind"


@dataclass(frozen=True)
class CrossKindRule:
    """An allowed ``blocker kind -> blocked kind`` pair."""

    from_kind: str
    to_kind: str


@dataclass(frozen=True)
class PolicyConfig:
    policy: DependencyPolicy = DependencyPolicy.SAME_EPIC_OR_SAME_KIND
    cross_kind_whitelist: tuple[CrossKindRule, ...] = ()

    def allows_cross_kind(self, from_kind: str, to_kind: str) -> bool:
        # Directional: Comms -> Dev does not imply Dev -> Comms.
        return any(
            rule.from_kind == from_kind and rule.to_kind == to_kind
            for rule in self.cross_kind_whitelist
        )


DEFAULT_POLICY_CONFIG = PolicyConfig(
    policy=DependencyPolicy.SAME_EPIC_OR_SAME_KIND,
    cross_kind_whitelist=(
        CrossKindRule("Comms", "Dev"),
        CrossKindRule("Product", "Dev"),
    ),
)


@dataclass(frozen=True)
class LinkCheck:
    """Outcome of a link validation; ``reason`` is set when rejected."""

    ok: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "LinkCheck":
        return cls(ok=True)

    @classmethod
    def reject(cls, reason: str) -> "LinkCheck":
        return cls(ok=False, reason=reason)

    def __bool__(self) -> bool:
        return self.ok


def can_link(blocker: Task, blocked: Task, config: PolicyConfig = DEFAULT_POLICY_CONFIG) -> LinkCheck:
    """Decide whether ``blocker`` may block ``blocked`` under *config*.

    Pure function of its inputs; rejections carry a human-readable reason and
    never raise.
    """
    if not blocker.id or blocker.id == blocked.id:
        return LinkCheck.reject("self-link forbidden")

    if blocker.domain and blocked.domain and blocker.domain != blocked.domain:
        return LinkCheck.reject("different domains")

    same_kind = blocker.kind is not None and blocked.kind is not None and blocker.kind == blocked.kind
    same_epic = bool(blocker.epic_id) and blocker.epic_id == blocked.epic_id

    policy = config.policy
    if policy is DependencyPolicy.STRICT_SAME_KIND:
        if same_kind:
            return LinkCheck.accept()
        return LinkCheck.reject("must share kind")

    if policy is DependencyPolicy.SAME_EPIC_OR_SAME_KIND:
        if same_kind or same_epic:
            return LinkCheck.accept()
        return LinkCheck.reject("neither same kind nor same epic/project")

    if policy is DependencyPolicy.WHITELIST_CROSS_KIND:
        if same_kind or same_epic:
            return LinkCheck.accept()
        if (
            blocker.kind is not None
            and blocked.kind is not None
            and config.allows_cross_kind(blocker.kind, blocked.kind)
        ):
            return LinkCheck.accept()
        return LinkCheck.reject("cross-kind not whitelisted")

    raise ValueError(f"Unknown dependency policy: {policy!r}")
