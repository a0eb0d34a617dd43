"""Configuration for the task-context engine.

All path conventions and tunables live in one frozen model so that hooks,
tests and scripts resolve files the same way. Values are layered:

1. Defaults declared on ``TaskContextSettings``
2. ``<cwd>/.claude/task-context.yaml`` (optional)
3. ``TASK_CONTEXT_<FIELD>`` environment variables

Example YAML:

    match_tolerance_seconds: 5
    spawn_tool_names: [Task, Agent]
    hook_log_enabled: false
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILE = Path(".claude") / "task-context.yaml"
ENV_PREFIX = "TASK_CONTEXT_"


class TaskContextSettings(BaseModel):
    """Path conventions and tunables.

    Attributes:
        logs_dir: Project-relative directory for hook logs and the task-call store
        task_calls_file: Filename of the side-channel store inside logs_dir
        state_dir: Project-relative directory for sub-agent start records
        active_subagents_file: Filename of the agent-start store inside state_dir
        agents_dir: Project-relative directory holding ``<type>.md`` agent definitions
        skills_dir: Project-relative directory holding ``<skill>/SKILL.md`` files
        spawn_tool_names: Tool names that spawn a sub-agent
        match_tolerance_seconds: Maximum gap between a spawn call and the
            sub-agent's first message for a proximity match
        lock_timeout_seconds: How long to wait for a store lock
        hook_log_enabled: Whether the hook router writes its JSONL audit log
    """

    model_config = ConfigDict(frozen=True)

    logs_dir: str = ".claude/logs"
    task_calls_file: str = "task-calls.json"
    state_dir: str = ".claude/state"
    active_subagents_file: str = "active-subagents.json"
    agents_dir: str = ".claude/agents"
    skills_dir: str = ".claude/skills"
    spawn_tool_names: tuple[str, ...] = ("Task", "Agent")
    match_tolerance_seconds: float = Field(default=10.0, ge=0)
    lock_timeout_seconds: float = Field(default=10.0, gt=0)
    hook_log_enabled: bool = True

    @field_validator("spawn_tool_names", mode="before")
    @classmethod
    def _split_tool_names(cls, value: Any) -> Any:
        # Env vars arrive as "Task,Agent"
        if isinstance(value, str):
            return tuple(name.strip() for name in value.split(",") if name.strip())
        return value


def _load_yaml_overrides(cwd: Path) -> dict[str, Any]:
    """Read the optional project config file."""
    config_path = cwd / CONFIG_FILE
    if not config_path.exists():
        return {}
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        print(f"WARNING: Failed to load {config_path}: {e}", file=sys.stderr)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        print(f"WARNING: {config_path} must contain a mapping, ignoring", file=sys.stderr)
        return {}
    known = set(TaskContextSettings.model_fields)
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown settings in %s: %s", config_path, sorted(unknown))
    return {k: v for k, v in data.items() if k in known}


def _load_env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in TaskContextSettings.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value
    return overrides


def load_settings(cwd: Path | str | None = None) -> TaskContextSettings:
    """Build settings for a project directory.

    Args:
        cwd: Project root. Defaults to CLAUDE_PROJECT_DIR, then the process cwd.

    Raises:
        pydantic.ValidationError: If a layered value has the wrong type.
    """
    if cwd is None:
        cwd = os.environ.get("CLAUDE_PROJECT_DIR") or os.getcwd()
    values = _load_yaml_overrides(Path(cwd))
    values.update(_load_env_overrides())
    return TaskContextSettings.model_validate(values)
