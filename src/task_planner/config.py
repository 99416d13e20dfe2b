"""Load optional planner configuration from `.planner/config.yaml`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from .constants import CONFIG_FILE, STATE_DIR_NAME
from .task_engine.policy import DEFAULT_POLICY_CONFIG, CrossKindRule, DependencyPolicy, PolicyConfig

logger = logging.getLogger(__name__)


def _load_yaml_with_error(path: Path) -> tuple[dict[str, Any], str | None]:
    """Load a YAML mapping and return ``(data, error_message)``."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        return {}, f"{path.name}: {exc.__class__.__name__}: {exc}"
    except yaml.YAMLError as exc:
        return {}, f"{path.name}: YAMLError: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path.name}: expected object, got {type(data).__name__}"
    return data, None


def load_planner_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional planner config file.

    Args:
        project_dir: Project root directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return {}, None
    return _load_yaml_with_error(path)


def _parse_whitelist(raw: Any) -> tuple[CrossKindRule, ...]:
    if not isinstance(raw, list):
        return ()
    rules: list[CrossKindRule] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        from_kind = entry.get("from")
        to_kind = entry.get("to")
        if isinstance(from_kind, str) and isinstance(to_kind, str) and from_kind and to_kind:
            rules.append(CrossKindRule(from_kind, to_kind))
        else:
            logger.warning("Ignoring malformed cross-kind whitelist entry: %r", entry)
    return tuple(rules)


def get_dependency_config(config: dict[str, Any]) -> PolicyConfig:
    """Build the linking policy from the ``dependencies`` config block.

    Args:
        config: Planner configuration dictionary.

    Returns:
        A :class:`PolicyConfig`. Missing settings fall back to
        ``DEFAULT_POLICY_CONFIG``.
    """
    raw = config.get("dependencies")
    if not isinstance(raw, dict):
        return DEFAULT_POLICY_CONFIG

    policy = DEFAULT_POLICY_CONFIG.policy
    policy_raw = raw.get("policy")
    if policy_raw is not None:
        try:
            policy = DependencyPolicy(str(policy_raw))
        except ValueError:
            logger.warning(
                "Unknown dependency policy %r; using %s", policy_raw, DEFAULT_POLICY_CONFIG.policy.value
            )

    if "cross_kind_whitelist" in raw:
        whitelist = _parse_whitelist(raw.get("cross_kind_whitelist"))
    else:
        whitelist = DEFAULT_POLICY_CONFIG.cross_kind_whitelist
    return PolicyConfig(policy=policy, cross_kind_whitelist=whitelist)


def load_policy_config(project_dir: Path) -> PolicyConfig:
    """Read the project's config file and return its linking policy."""
    config, err = load_planner_config(project_dir)
    if err:
        logger.warning("Could not read planner config: %s", err)
    return get_dependency_config(config)
