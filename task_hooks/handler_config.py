"""
Handler Configuration: which handlers run for which hook event.

The router looks up the event name here and runs the listed handlers in
order. Tool filtering (only spawn tools) happens inside each handler so the
table stays per-event.
"""

from typing import Dict, List, Set

HANDLER_EXECUTION_ORDER: Dict[str, List[str]] = {
    "PreToolUse": ["task_call_logger"],
    "PostToolUse": ["task_result_logger"],
    "SubagentStart": ["subagent_start_recorder"],
    "SubagentStop": ["subagent_edits_reporter"],
}

# Skipped for events raised inside a sub-agent
MAIN_AGENT_ONLY_HANDLERS: Set[str] = {
    "task_call_logger",
    "task_result_logger",
}

# Characters of prompt / tool response kept in log records
LOG_PREVIEW_CHARS = 200
