"""Agent definition files (``.claude/agents/<type>.md``).

Definitions are markdown with YAML frontmatter; the ``skills`` key lists
skills preloaded into the agent:

    ---
    name: ui-developer
    skills: [react, testing]
    ---
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from task_context.config import TaskContextSettings
from task_context.paths import get_agent_definition_path, get_skill_file_path

logger = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"


def find_agent_definition(
    cwd: Path | str, subagent_type: str, settings: TaskContextSettings
) -> Path | None:
    """Definition file for ``subagent_type``, or None if the project has none."""
    if not subagent_type or subagent_type == "unknown":
        return None
    path = get_agent_definition_path(cwd, subagent_type, settings)
    return path if path.is_file() else None


def load_agent_frontmatter(path: Path) -> dict[str, Any]:
    """Parse the YAML frontmatter block; malformed or missing frontmatter gives {}."""
    try:
        lines = path.read_text(encoding="utf-8").split("\n")
    except OSError as e:
        logger.warning("Cannot read agent definition %s: %s", path, e)
        return {}

    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return {}
    for end, line in enumerate(lines[1:], start=1):
        if line.strip() == FRONTMATTER_DELIMITER:
            break
    else:
        logger.warning("Unclosed frontmatter in %s", path)
        return {}

    try:
        data = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML frontmatter in %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def preloaded_skill_files(
    cwd: Path | str, frontmatter: dict[str, Any], settings: TaskContextSettings
) -> list[str]:
    skills = frontmatter.get("skills") or []
    if isinstance(skills, str):
        skills = [s.strip() for s in skills.split(",") if s.strip()]
    if not isinstance(skills, list):
        return []
    return [str(get_skill_file_path(cwd, str(skill), settings)) for skill in skills]
