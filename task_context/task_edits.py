"""Assemble everything known about one finished sub-agent.

``get_task_edits`` is the entry point used by SubagentStop hooks and by
downstream tooling (commit messages, PR bodies). Given the path of an
``agent-<id>.jsonl`` transcript it:

1. reads the sub-agent transcript and locates the main session transcript;
2. reads the agent-start record saved at SubagentStart, if any;
3. matches the spawning Task call in the main transcript;
4. consumes the task-call record saved at PreToolUse[Task] for that call,
   then removes the agent-start record;
5. resolves the agent definition and its preloaded skills;
6. extracts new, edited and deleted files.

Both side-channel records are removed once read, so a second analysis of the
same sub-agent sees only what the transcripts themselves contain.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from task_context.agent_definitions import (
    find_agent_definition,
    load_agent_frontmatter,
    preloaded_skill_files,
)
from task_context.config import TaskContextSettings, load_settings
from task_context.errors import InvalidAgentTranscriptError, ParentTranscriptNotFoundError
from task_context.file_ops import extract_file_operations
from task_context.matcher import match_task_call
from task_context.paths import is_agent_transcript_path, parent_transcript_candidates
from task_context.task_calls import AgentStartStore, TaskCallStore
from task_context.transcripts import read_transcript

logger = logging.getLogger(__name__)

UNKNOWN_SUBAGENT_TYPE = "unknown"


class TaskEditsResult(BaseModel):
    """Immutable summary of a sub-agent run.

    Serialize with ``model_dump(by_alias=True)`` for the camelCase record
    consumed by other hooks.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    agent_session_id: str = Field(alias="agentSessionId")
    parent_session_transcript: str = Field(alias="parentSessionTranscript")
    agent_session_transcript: str = Field(alias="agentSessionTranscript")
    subagent_type: str = Field(alias="subagentType")
    agent_prompt: str = Field(alias="agentPrompt")
    agent_file: str | None = Field(default=None, alias="agentFile")
    agent_preloaded_skills_files: tuple[str, ...] = Field(
        default=(), alias="agentPreloadedSkillsFiles"
    )
    agent_new_files: tuple[str, ...] = Field(default=(), alias="agentNewFiles")
    agent_deleted_files: tuple[str, ...] = Field(default=(), alias="agentDeletedFiles")
    agent_edited_files: tuple[str, ...] = Field(default=(), alias="agentEditedFiles")
    match_strategy: str | None = Field(default=None, alias="matchStrategy")


def find_parent_transcript(agent_transcript_path: Path, session_id: str) -> Path:
    candidates = parent_transcript_candidates(agent_transcript_path, session_id)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise ParentTranscriptNotFoundError(candidates[0])


def get_task_edits(
    agent_transcript_path: Path | str,
    *,
    context_path: Path | str | None = None,
    agent_state_path: Path | str | None = None,
    subagent_type: str | None = None,
    settings: TaskContextSettings | None = None,
) -> TaskEditsResult:
    """Analyse a sub-agent transcript.

    Args:
        agent_transcript_path: Path to ``agent-<id>.jsonl``.
        context_path: Override for the task-call store file.
        agent_state_path: Override for the agent-start store file.
        subagent_type: Agent type reported by the host, used as a matching hint.
        settings: Defaults to ``load_settings`` for the transcript's cwd.

    Raises:
        InvalidAgentTranscriptError: Not an agent transcript, or no agent id.
        TranscriptNotFoundError: The agent transcript does not exist.
        EmptyTranscriptError: The agent transcript has no messages.
        ParentTranscriptNotFoundError: The main session transcript is missing.
    """
    agent_path = Path(agent_transcript_path)
    if not is_agent_transcript_path(agent_path):
        raise InvalidAgentTranscriptError(
            f"Path must be an agent transcript (agent-<id>.jsonl): {agent_path.name}",
            agent_path,
        )

    sub = read_transcript(agent_path)
    if not sub.agent_id:
        raise InvalidAgentTranscriptError(
            f"Could not determine agentId from transcript: {agent_path}", agent_path
        )

    cwd = sub.cwd
    if settings is None:
        settings = load_settings(cwd)

    parent_path = find_parent_transcript(agent_path, sub.session_id)
    parent = read_transcript(parent_path)

    start_store = None
    start_context = None
    if agent_state_path or cwd:
        start_store = (
            AgentStartStore(agent_state_path, settings.lock_timeout_seconds)
            if agent_state_path
            else AgentStartStore.for_project(cwd, settings)
        )
        start_context = start_store.get(sub.agent_id)

    match = match_task_call(
        parent,
        sub,
        subagent_type=(start_context.agent_type if start_context else None) or subagent_type,
        tool_use_id=(start_context.tool_use_id if start_context else None) or None,
        settings=settings,
    )

    call_context = None
    if match and (context_path or cwd):
        call_store = (
            TaskCallStore(context_path, settings.lock_timeout_seconds)
            if context_path
            else TaskCallStore.for_project(cwd, settings)
        )
        call_context = call_store.take(match.tool_use_id)
    if start_store is not None:
        start_store.delete(sub.agent_id)

    # The start record's prompt belongs to the call guessed at SubagentStart
    start_prompt = ""
    if start_context and (match is None or start_context.tool_use_id == match.tool_use_id):
        start_prompt = start_context.prompt

    resolved_type = (
        (match.subagent_type if match and match.subagent_type != UNKNOWN_SUBAGENT_TYPE else None)
        or (call_context.agent_type if call_context else None)
        or (start_context.agent_type if start_context else None)
        or subagent_type
        or UNKNOWN_SUBAGENT_TYPE
    )
    prompt = (
        (call_context.prompt if call_context else "")
        or start_prompt
        or (match.prompt if match else "")
    )

    agent_file = None
    skills_files: list[str] = []
    if cwd:
        definition = find_agent_definition(cwd, resolved_type, settings)
        if definition:
            agent_file = str(definition)
            skills_files = preloaded_skill_files(cwd, load_agent_frontmatter(definition), settings)

    operations = extract_file_operations(sub)
    logger.info(
        "Agent %s (%s): %d new, %d edited, %d deleted",
        sub.agent_id,
        resolved_type,
        len(operations.new),
        len(operations.edited),
        len(operations.deleted),
    )

    return TaskEditsResult(
        session_id=sub.session_id,
        agent_session_id=sub.agent_id,
        parent_session_transcript=str(parent_path),
        agent_session_transcript=str(agent_path),
        subagent_type=resolved_type,
        agent_prompt=prompt,
        agent_file=agent_file,
        agent_preloaded_skills_files=tuple(skills_files),
        agent_new_files=tuple(operations.new),
        agent_deleted_files=tuple(operations.deleted),
        agent_edited_files=tuple(operations.edited),
        match_strategy=match.strategy.value if match else None,
    )
