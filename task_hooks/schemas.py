from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, Field

# --- Input Schemas (Context) ---


class HookContext(BaseModel):
    """
    Normalized input context for all handlers.

    Built once by the router from the host's stdin payload. Fields that only
    exist for some events (tool_*, agent_*) are None elsewhere.
    """

    # Core Identity
    session_id: str = Field(..., description="The unique session identifier.")
    hook_event: str = Field(..., description="Event name (e.g., PreToolUse, SubagentStop).")
    trace_id: str | None = Field(None, description="Unique ID for this hook invocation.")

    # Sub-agent identity (SubagentStart / SubagentStop)
    agent_id: str | None = None
    agent_type: str | None = None
    agent_transcript_path: str | None = None
    is_subagent: bool = Field(
        default=False, description="Whether the event was raised inside a sub-agent."
    )

    # Tool events
    tool_name: str | None = None
    tool_use_id: str | None = None
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_response: Any = None

    transcript_path: str | None = None
    cwd: str | None = None

    # Raw Input (for fallback/passthrough)
    raw_input: dict[str, Any] = Field(default_factory=dict)


# --- Claude Code Hook Schemas ---


class ClaudeHookSpecificOutput(BaseModel):
    """
    Nested output structure for Claude Code hooks (used in most events).
    """

    hookEventName: str
    permissionDecision: Literal["allow", "deny", "ask"] | None = None


class ClaudeStopHookOutput(BaseModel):
    """
    Output structure for the 'Stop' and 'SubagentStop' events.
    These events use top-level fields instead of hookSpecificOutput.
    """

    decision: Literal["block"] | None = None
    reason: str | None = None
    systemMessage: str | None = None


class ClaudeGeneralHookOutput(BaseModel):
    """
    Output structure for standard Claude Code hooks (PreToolUse, etc.).
    """

    systemMessage: str | None = None
    hookSpecificOutput: ClaudeHookSpecificOutput | None = None


ClaudeHookOutput: TypeAlias = ClaudeGeneralHookOutput | ClaudeStopHookOutput


# --- Canonical Internal Schema ---


class CanonicalHookOutput(BaseModel):
    """
    Internal normalized format used by the router to merge handler results.
    """

    system_message: str | None = None
    verdict: Literal["allow", "warn"] = "allow"
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Audit Log ---


class HookLogEntry(BaseModel):
    """Single entry in the per-session hooks JSONL log.

    Attributes:
        hook_event: Name of the hook event (e.g., SubagentStop)
        logged_at: ISO timestamp when the event was logged
        exit_code: Exit code of the hook (0 = success)
        input: Raw payload received from the host
        output: Merged handler output
    """

    hook_event: str
    session_id: str
    trace_id: str | None = None
    logged_at: str
    exit_code: int = 0
    agent_id: str | None = None
    tool_name: str | None = None
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] | None = None
