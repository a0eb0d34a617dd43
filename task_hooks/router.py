#!/usr/bin/env python3
"""
Task-context Hook Router.

Single entry point for the Claude Code hook events this package handles
(PreToolUse, PostToolUse, SubagentStart, SubagentStop). Register it once per
event in settings.json:

    {"hooks": {"SubagentStop": [{"hooks": [
        {"type": "command", "command": "task-context-hook"}]}]}}

Architecture:
- Reads the host payload from stdin and normalizes it into a HookContext.
- Loads TaskContextSettings once for the project and passes them to handlers.
- HandlerResult objects are used internally, converted to JSON only at output.
- Always exits 0: this router observes and annotates, it never blocks.
"""

import argparse
import json
import sys
import time
import traceback
import uuid
from typing import Any

from pydantic import ValidationError

from task_context.config import TaskContextSettings, load_settings
from task_context.paths import is_agent_transcript_path

from task_hooks.handler_config import HANDLER_EXECUTION_ORDER, MAIN_AGENT_ONLY_HANDLERS
from task_hooks.handlers import HANDLERS
from task_hooks.hook_logger import configure_logging, log_hook_event
from task_hooks.results import HandlerResult
from task_hooks.schemas import (
    CanonicalHookOutput,
    ClaudeGeneralHookOutput,
    ClaudeHookOutput,
    ClaudeHookSpecificOutput,
    ClaudeStopHookOutput,
    HookContext,
)

SUBAGENT_EVENTS = frozenset({"SubagentStart", "SubagentStop"})
STOP_EVENTS = frozenset({"Stop", "SubagentStop"})


class HookRouter:
    @staticmethod
    def _normalize_json_field(value: Any) -> Any:
        """Normalize a field that may be a JSON string to its parsed form."""
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value

    @staticmethod
    def _is_subagent_event(raw_input: dict[str, Any], hook_event: str) -> bool:
        if raw_input.get("parent_tool_use_id"):
            return True
        # SubagentStart/Stop carry agent_id but fire in the main session
        if hook_event not in SUBAGENT_EVENTS and raw_input.get("agent_id"):
            return True
        transcript_path = raw_input.get("transcript_path")
        return bool(transcript_path) and is_agent_transcript_path(transcript_path)

    def normalize_input(self, raw_input: dict[str, Any]) -> HookContext:
        """Create a normalized HookContext from raw input."""
        hook_event = raw_input.get("hook_event_name")
        if not hook_event:
            raise KeyError("hook_event_name")

        session_id = raw_input.get("session_id") or f"unknown-{str(uuid.uuid4())[:8]}"

        tool_input = self._normalize_json_field(raw_input.get("tool_input", {}))
        if not isinstance(tool_input, dict):
            tool_input = {}

        tool_response = raw_input.get("tool_response")
        if tool_response is None:
            tool_response = raw_input.get("tool_result")
        tool_response = self._normalize_json_field(tool_response)

        return HookContext(
            session_id=session_id,
            hook_event=hook_event,
            trace_id=str(uuid.uuid4()),
            agent_id=raw_input.get("agent_id"),
            agent_type=raw_input.get("agent_type"),
            agent_transcript_path=raw_input.get("agent_transcript_path"),
            is_subagent=self._is_subagent_event(raw_input, hook_event),
            tool_name=raw_input.get("tool_name"),
            tool_use_id=raw_input.get("tool_use_id"),
            tool_input=tool_input,
            tool_response=tool_response,
            transcript_path=raw_input.get("transcript_path"),
            cwd=raw_input.get("cwd"),
            raw_input=raw_input,
        )

    def load_settings(self, ctx: HookContext) -> TaskContextSettings:
        try:
            return load_settings(ctx.cwd)
        except ValidationError as e:
            print(f"WARNING: Invalid task-context settings, using defaults: {e}", file=sys.stderr)
            return TaskContextSettings()

    def execute_hooks(
        self, ctx: HookContext, settings: TaskContextSettings | None = None
    ) -> CanonicalHookOutput:
        """Run all configured handlers for the event and merge results."""
        settings = settings or self.load_settings(ctx)
        merged_result = CanonicalHookOutput()

        handler_names = HANDLER_EXECUTION_ORDER.get(ctx.hook_event, [])
        if ctx.is_subagent:
            handler_names = [h for h in handler_names if h not in MAIN_AGENT_ONLY_HANDLERS]

        for handler_name in handler_names:
            handler = HANDLERS.get(handler_name)
            if not handler:
                continue

            start_time = time.monotonic()
            try:
                result = handler(ctx, settings)
                duration = time.monotonic() - start_time
                merged_result.metadata.setdefault("handler_times", {})[handler_name] = duration
                if result:
                    self._merge_result(merged_result, self._handler_result_to_canonical(result))
            except Exception as e:
                error_msg = f"Handler '{handler_name}' failed: {e}"
                print(error_msg, file=sys.stderr)
                merged_result.metadata.setdefault("errors", []).append(error_msg)
                merged_result.metadata.setdefault("tracebacks", []).append(traceback.format_exc())

        log_hook_event(ctx, settings, output=merged_result)
        return merged_result

    def _handler_result_to_canonical(self, result: HandlerResult) -> CanonicalHookOutput:
        """Convert HandlerResult to CanonicalHookOutput."""
        return CanonicalHookOutput(
            verdict=result.verdict.value,
            system_message=result.system_message,
            metadata=result.metadata,
        )

    def _merge_result(self, target: CanonicalHookOutput, source: CanonicalHookOutput) -> None:
        """Merge source into target (in-place)."""
        if source.verdict == "warn":
            target.verdict = "warn"

        if source.system_message:
            target.system_message = (
                f"{target.system_message}\n{source.system_message}"
                if target.system_message
                else source.system_message
            )

        target.metadata.update(source.metadata)

    def output_for_claude(self, result: CanonicalHookOutput, event: str) -> ClaudeHookOutput:
        """Format for Claude Code."""
        if event in STOP_EVENTS:
            return ClaudeStopHookOutput(systemMessage=result.system_message)

        output = ClaudeGeneralHookOutput(systemMessage=result.system_message)
        if event == "PreToolUse":
            output.hookSpecificOutput = ClaudeHookSpecificOutput(
                hookEventName=event,
                permissionDecision="allow",
            )
        return output


# --- Main Entry Point ---


def main() -> None:
    parser = argparse.ArgumentParser(description="Task-context hook router")
    parser.parse_known_args()
    configure_logging()

    raw_input: dict[str, Any] = {}
    try:
        if not sys.stdin.isatty():
            input_data = sys.stdin.read()
            if input_data.strip():
                raw_input = json.loads(input_data)
    except (OSError, json.JSONDecodeError) as e:
        print(f"WARNING: Failed to read stdin: {e}", file=sys.stderr)

    router = HookRouter()
    try:
        ctx = router.normalize_input(raw_input)
    except KeyError as e:
        print(f"WARNING: Hook payload missing {e}", file=sys.stderr)
        print("{}")
        sys.exit(0)

    result = router.execute_hooks(ctx)
    output = router.output_for_claude(result, ctx.hook_event)
    print(output.model_dump_json(exclude_none=True))
    sys.exit(0)


if __name__ == "__main__":
    main()
