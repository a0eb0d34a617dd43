#!/usr/bin/env python3
"""
Hook event audit log.

Every router invocation appends one JSON line to:

    <cwd>/.claude/logs/hooks/<YYYY-MM-DD>-<shorthash>-hooks.jsonl

with the raw host payload, the merged handler output and process metrics
(pid, memory, uptime) for debugging runaway hooks. Logging never raises:
failures are reported on stderr and the hook continues.
"""

import hashlib
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

import psutil

from task_context.config import TaskContextSettings
from task_context.paths import get_hook_log_dir

from task_hooks.schemas import CanonicalHookOutput, HookContext, HookLogEntry

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """stderr logging for the hook process; stdout carries the host JSON."""
    level = logging.DEBUG if os.environ.get("TASK_CONTEXT_DEBUG") else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def get_session_short_hash(session_id: str) -> str:
    """8-character identifier: the UUID prefix, or a SHA-256 prefix for short ids."""
    if len(session_id) >= 8 and session_id[:8].isalnum():
        return session_id[:8].lower()
    return hashlib.sha256(session_id.encode()).hexdigest()[:8]


def get_hook_log_path(ctx: HookContext, settings: TaskContextSettings, date: str | None = None) -> Path:
    if date is None:
        date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    cwd = ctx.cwd or os.environ.get("CLAUDE_PROJECT_DIR") or os.getcwd()
    short_hash = get_session_short_hash(ctx.session_id)
    return get_hook_log_dir(cwd, settings) / f"{date}-{short_hash}-hooks.jsonl"


def log_hook_event(
    ctx: HookContext,
    settings: TaskContextSettings,
    output: CanonicalHookOutput | None = None,
    exit_code: int = 0,
) -> None:
    """
    Log a hook event to the per-session hooks log file.
    """
    if not settings.hook_log_enabled:
        return
    # Fail-safe: no session = nothing to key the file on
    if not ctx.session_id or ctx.session_id.startswith("unknown"):
        return

    try:
        log_path = get_hook_log_path(ctx, settings)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        process = psutil.Process(os.getpid())
        mem_info = process.memory_info()

        log_entry = HookLogEntry(
            hook_event=ctx.hook_event,
            session_id=ctx.session_id,
            trace_id=ctx.trace_id,
            logged_at=datetime.now().astimezone().replace(microsecond=0).isoformat(),
            exit_code=exit_code,
            agent_id=ctx.agent_id,
            tool_name=ctx.tool_name,
            input=ctx.raw_input,
            output=output.model_dump() if output else None,
        )

        log_dict = log_entry.model_dump()
        log_dict["debug"] = {
            "pid": os.getpid(),
            "ppid": os.getppid(),
            "mem_rss_mb": mem_info.rss / (1024 * 1024),
            "process_uptime": time.time() - process.create_time(),
        }

        with log_path.open("a", encoding="utf-8") as f:
            json.dump(log_dict, f, separators=(",", ":"), default=str)
            f.write("\n")

    except (OSError, psutil.Error) as e:
        print(f"WARNING: Failed to write hook log: {e}", file=sys.stderr)
