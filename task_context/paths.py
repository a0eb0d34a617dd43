"""File location conventions for transcripts, stores and agent definitions.

Claude Code writes the main session to ``<project-dir>/<session_id>.jsonl``
and each sub-agent to ``agent-<agent_id>.jsonl``, either beside it (flat
layout) or under ``<session_id>/subagents/`` (nested layout). Project-local
files (stores, logs, agent definitions) hang off the session's cwd.
"""

from __future__ import annotations

from pathlib import Path

from task_context.config import TaskContextSettings

AGENT_TRANSCRIPT_PREFIX = "agent-"
TRANSCRIPT_SUFFIX = ".jsonl"


def get_task_calls_path(cwd: Path | str, settings: TaskContextSettings) -> Path:
    """Side-channel store written at PreToolUse[Task]."""
    return Path(cwd) / settings.logs_dir / settings.task_calls_file


def get_active_subagents_path(cwd: Path | str, settings: TaskContextSettings) -> Path:
    """Agent-start store written at SubagentStart."""
    return Path(cwd) / settings.state_dir / settings.active_subagents_file


def get_hook_log_dir(cwd: Path | str, settings: TaskContextSettings) -> Path:
    return Path(cwd) / settings.logs_dir / "hooks"


def get_agent_definition_path(
    cwd: Path | str, subagent_type: str, settings: TaskContextSettings
) -> Path:
    """Conventional location of an agent definition.

    Plugin-qualified types ("plugin:name") resolve to ``name.md``.
    """
    name = subagent_type.rsplit(":", 1)[-1]
    return Path(cwd) / settings.agents_dir / f"{name}.md"


def get_skill_file_path(cwd: Path | str, skill: str, settings: TaskContextSettings) -> Path:
    return Path(cwd) / settings.skills_dir / skill / "SKILL.md"


def is_agent_transcript_path(path: Path | str) -> bool:
    name = Path(path).name
    return name.startswith(AGENT_TRANSCRIPT_PREFIX) and name.endswith(TRANSCRIPT_SUFFIX)


def agent_id_from_path(path: Path | str) -> str | None:
    """Return ``<id>`` from ``agent-<id>.jsonl``, or None for other files."""
    if not is_agent_transcript_path(path):
        return None
    name = Path(path).name
    agent_id = name[len(AGENT_TRANSCRIPT_PREFIX) : -len(TRANSCRIPT_SUFFIX)]
    return agent_id or None


def parent_transcript_candidates(agent_path: Path | str, session_id: str) -> list[Path]:
    """Possible locations of the main session transcript, most likely first."""
    agent_path = Path(agent_path)
    directory = agent_path.parent
    filename = f"{session_id}{TRANSCRIPT_SUFFIX}"
    candidates = [directory / filename]

    # Nested layout: <project>/<session_id>/subagents/agent-<id>.jsonl
    if directory.name == "subagents" and directory.parent.name == session_id:
        candidates.append(directory.parent.parent / filename)
    return candidates
