"""
Handler functions for the task-context hook events.

Each handler takes the normalized HookContext plus the project settings and
returns a HandlerResult, or None when the event is not its concern. Handlers
observe only: none of them ever blocks the host action. Engine failures are
reported as warnings so a broken transcript never stops a session.

    PreToolUse[Task]   -> task_call_logger        (save spawn context)
    PostToolUse[Task]  -> task_result_logger      (log completion)
    SubagentStart      -> subagent_start_recorder (save agent start context)
    SubagentStop       -> subagent_edits_reporter (correlate + extract edits)
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from task_context.config import TaskContextSettings
from task_context.errors import TaskContextError
from task_context.task_calls import (
    TaskCallStore,
    save_agent_start_context,
    save_task_call_context,
)
from task_context.task_edits import TaskEditsResult, get_task_edits

from task_hooks.handler_config import LOG_PREVIEW_CHARS
from task_hooks.results import HandlerResult
from task_hooks.schemas import HookContext

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[HookContext, TaskContextSettings], Optional[HandlerResult]]


def _preview(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    if len(text) > LOG_PREVIEW_CHARS:
        return text[:LOG_PREVIEW_CHARS] + "..."
    return text


def _is_spawn_call(ctx: HookContext, settings: TaskContextSettings) -> bool:
    return bool(ctx.tool_name) and ctx.tool_name in settings.spawn_tool_names


# --- PreToolUse ---


def run_task_call_logger(ctx: HookContext, settings: TaskContextSettings) -> Optional[HandlerResult]:
    """Save the Task call's prompt and agent type, keyed by tool_use_id."""
    if ctx.hook_event != "PreToolUse" or not _is_spawn_call(ctx, settings):
        return None
    if not ctx.tool_use_id or not ctx.cwd:
        print("WARNING: Task call without tool_use_id or cwd, not saved", file=sys.stderr)
        return None

    agent_type = ctx.tool_input.get("subagent_type") or "unknown"
    prompt = ctx.tool_input.get("prompt") or ""
    context = save_task_call_context(
        tool_use_id=ctx.tool_use_id,
        agent_type=str(agent_type),
        session_id=ctx.session_id,
        prompt=str(prompt),
        cwd=ctx.cwd,
        settings=settings,
    )
    logger.debug("Task call %s (%s): %s", context.tool_use_id, context.agent_type, _preview(prompt))
    return HandlerResult.allow(
        metadata={"task_call": {"tool_use_id": context.tool_use_id, "agent_type": context.agent_type}}
    )


# --- PostToolUse ---


def run_task_result_logger(
    ctx: HookContext, settings: TaskContextSettings
) -> Optional[HandlerResult]:
    """Log a finished Task call against its saved context.

    The saved record is read, not consumed: SubagentStop owns its removal.
    """
    if ctx.hook_event != "PostToolUse" or not _is_spawn_call(ctx, settings):
        return None
    if not ctx.tool_use_id or not ctx.cwd:
        return None

    context = TaskCallStore.for_project(ctx.cwd, settings).get(ctx.tool_use_id)
    if context is None:
        logger.debug("No saved context for tool_use_id %s", ctx.tool_use_id)
        return None

    record = {
        "tool_use_id": ctx.tool_use_id,
        "agent_type": context.agent_type,
        "prompt": _preview(context.prompt),
        "response": _preview(ctx.tool_response) if ctx.tool_response is not None else None,
    }
    logger.info("Task %s (%s) completed", ctx.tool_use_id, context.agent_type)
    return HandlerResult.allow(metadata={"task_result": record})


# --- SubagentStart ---


def run_subagent_start_recorder(
    ctx: HookContext, settings: TaskContextSettings
) -> Optional[HandlerResult]:
    """Remember which pending Task call a starting sub-agent belongs to."""
    if ctx.hook_event != "SubagentStart":
        return None
    if not (ctx.agent_id and ctx.cwd and ctx.transcript_path):
        print("WARNING: SubagentStart without agent_id, cwd or transcript_path", file=sys.stderr)
        return None

    try:
        context = save_agent_start_context(
            agent_id=ctx.agent_id,
            agent_type=ctx.agent_type or "unknown",
            session_id=ctx.session_id,
            cwd=ctx.cwd,
            transcript_path=ctx.transcript_path,
            settings=settings,
        )
    except TaskContextError as e:
        print(f"WARNING: Could not record sub-agent start: {e}", file=sys.stderr)
        return HandlerResult.warn(metadata={"subagent_start_error": str(e)})

    return HandlerResult.allow(
        metadata={
            "subagent_start": {
                "agent_id": context.agent_id,
                "agent_type": context.agent_type,
                "tool_use_id": context.tool_use_id or None,
            }
        }
    )


# --- SubagentStop ---


def resolve_agent_transcript_path(ctx: HookContext) -> Optional[Path]:
    """Sub-agent transcript from the payload, else by naming convention."""
    if ctx.agent_transcript_path:
        return Path(ctx.agent_transcript_path)
    if not (ctx.agent_id and ctx.transcript_path):
        return None
    main = Path(ctx.transcript_path)
    filename = f"agent-{ctx.agent_id}.jsonl"
    for candidate in (main.parent / filename, main.parent / main.stem / "subagents" / filename):
        if candidate.exists():
            return candidate
    return main.parent / filename


def format_edits_summary(result: TaskEditsResult) -> str:
    return (
        f"Sub-agent {result.subagent_type} ({result.agent_session_id}): "
        f"{len(result.agent_new_files)} new, "
        f"{len(result.agent_edited_files)} edited, "
        f"{len(result.agent_deleted_files)} deleted"
    )


def run_subagent_edits_reporter(
    ctx: HookContext, settings: TaskContextSettings
) -> Optional[HandlerResult]:
    """Correlate a finished sub-agent with its Task call and report its file edits."""
    if ctx.hook_event != "SubagentStop":
        return None

    agent_path = resolve_agent_transcript_path(ctx)
    if agent_path is None:
        print("WARNING: SubagentStop without a resolvable agent transcript", file=sys.stderr)
        return None

    try:
        result = get_task_edits(agent_path, subagent_type=ctx.agent_type, settings=settings)
    except TaskContextError as e:
        print(f"WARNING: Task edit analysis failed: {e}", file=sys.stderr)
        return HandlerResult.warn(metadata={"task_edits_error": str(e)})

    return HandlerResult.allow(
        system_message=format_edits_summary(result),
        metadata={"task_edits": result.model_dump(mode="json", by_alias=True)},
    )


HANDLERS: Dict[str, HandlerFunc] = {
    "task_call_logger": run_task_call_logger,
    "task_result_logger": run_task_result_logger,
    "subagent_start_recorder": run_subagent_start_recorder,
    "subagent_edits_reporter": run_subagent_edits_reporter,
}
