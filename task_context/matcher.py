"""Find the Task call in the main transcript that spawned a sub-agent.

Nothing in a sub-agent transcript points back at the tool_use that launched
it. The link is recovered from the parent side, trying in order:

1. The parent's tool_result for a Task call, whose ``toolUseResult.agentId``
   names the sub-agent. Exact, but only present once the sub-agent finished.
2. A tool_use id guessed by the caller (saved at SubagentStart), unless the
   parent answered that call for a different agent.
3. Timestamp proximity: among Task calls of the same agent type, the latest
   one issued at or before the sub-agent's first message and no more than
   ``match_tolerance_seconds`` earlier.

No match is a normal outcome; callers proceed with reduced context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import StrEnum

from task_context.config import TaskContextSettings
from task_context.tools import SpawnInput
from task_context.transcripts import ToolResultRecord, Transcript, parse_timestamp

logger = logging.getLogger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


class MatchStrategy(StrEnum):
    TOOL_USE_ID = "tool_use_id"
    AGENT_ID = "agent_id"
    PROXIMITY = "proximity"


@dataclass(frozen=True)
class SpawnCall:
    """A Task tool_use in the parent transcript."""

    tool_use_id: str
    subagent_type: str
    prompt: str
    timestamp: str
    index: int

    @property
    def time(self) -> datetime | None:
        return parse_timestamp(self.timestamp)

    def sort_key(self) -> tuple[datetime, int]:
        return (self.time or _EARLIEST, self.index)


@dataclass(frozen=True)
class MatchedCall:
    tool_use_id: str
    subagent_type: str
    prompt: str
    timestamp: str
    strategy: MatchStrategy


def _matched(call: SpawnCall, strategy: MatchStrategy) -> MatchedCall:
    return MatchedCall(
        tool_use_id=call.tool_use_id,
        subagent_type=call.subagent_type,
        prompt=call.prompt,
        timestamp=call.timestamp,
        strategy=strategy,
    )


def collect_spawn_calls(
    transcript: Transcript, settings: TaskContextSettings | None = None
) -> list[SpawnCall]:
    """All sub-agent spawning tool uses, in file order."""
    settings = settings or TaskContextSettings()
    names = set(settings.spawn_tool_names)
    calls: list[SpawnCall] = []
    for use in transcript.tool_uses():
        if use.name not in names:
            continue
        if isinstance(use.input, SpawnInput):
            subagent_type, prompt = use.input.subagent_type, use.input.prompt
        else:
            raw_type, raw_prompt = use.raw_input.get("subagent_type"), use.raw_input.get("prompt")
            subagent_type = raw_type if isinstance(raw_type, str) else None
            prompt = raw_prompt if isinstance(raw_prompt, str) else ""
        calls.append(
            SpawnCall(
                tool_use_id=use.id,
                subagent_type=subagent_type or "unknown",
                prompt=prompt or "",
                timestamp=use.timestamp,
                index=len(calls),
            )
        )
    return calls


def _answered_for_other_agent(
    tool_use_id: str, results: dict[str, ToolResultRecord], agent_id: str | None
) -> bool:
    linked = results.get(tool_use_id)
    return bool(linked and linked.agent_id and linked.agent_id != agent_id)


def find_pending_task_call(
    transcript: Transcript, agent_type: str, settings: TaskContextSettings | None = None
) -> SpawnCall | None:
    """Most recent Task call of ``agent_type`` that has no tool_result yet."""
    completed = set(transcript.tool_results())
    pending = [
        call
        for call in collect_spawn_calls(transcript, settings)
        if call.subagent_type == agent_type and call.tool_use_id not in completed
    ]
    if not pending:
        return None
    return max(pending, key=SpawnCall.sort_key)


def match_task_call(
    parent: Transcript,
    sub: Transcript,
    *,
    subagent_type: str | None = None,
    tool_use_id: str | None = None,
    settings: TaskContextSettings | None = None,
) -> MatchedCall | None:
    """Locate the Task call in ``parent`` that spawned ``sub``.

    Args:
        parent: Main session transcript.
        sub: Sub-agent transcript.
        subagent_type: Agent type hint used when ``sub`` declares none.
        tool_use_id: Spawning tool_use id guessed at SubagentStart, if any.
        settings: Supplies spawn tool names and the proximity tolerance.

    Returns:
        The matched call, or None when no strategy finds one.
    """
    settings = settings or TaskContextSettings()
    calls = collect_spawn_calls(parent, settings)
    by_id = {call.tool_use_id: call for call in calls}
    results = parent.tool_results()

    if sub.agent_id:
        for result in results.values():
            if result.agent_id == sub.agent_id and result.tool_use_id in by_id:
                logger.debug("Matched agent %s to %s by tool result", sub.agent_id, result.tool_use_id)
                return _matched(by_id[result.tool_use_id], MatchStrategy.AGENT_ID)

    if tool_use_id and tool_use_id in by_id:
        if _answered_for_other_agent(tool_use_id, results, sub.agent_id):
            logger.info(
                "Ignoring tool_use id %s for agent %s: answered for agent %s",
                tool_use_id,
                sub.agent_id,
                results[tool_use_id].agent_id,
            )
        else:
            logger.debug("Matched %s by known tool_use id", tool_use_id)
            return _matched(by_id[tool_use_id], MatchStrategy.TOOL_USE_ID)

    start = sub.start_time
    if start is None:
        logger.info("Sub-agent transcript %s has no usable start time", sub.source_path)
        return None

    wanted_type = sub.subagent_type or subagent_type
    tolerance = timedelta(seconds=settings.match_tolerance_seconds)
    candidates = []
    for call in calls:
        if wanted_type and call.subagent_type != wanted_type:
            continue
        if _answered_for_other_agent(call.tool_use_id, results, sub.agent_id):
            continue
        call_time = call.time
        if call_time is None:
            continue
        if timedelta(0) <= start - call_time <= tolerance:
            candidates.append(call)

    if not candidates:
        logger.info(
            "No Task call found for agent %s (type=%s) in %s",
            sub.agent_id,
            wanted_type,
            parent.source_path,
        )
        return None

    best = max(candidates, key=SpawnCall.sort_key)
    logger.debug(
        "Matched agent %s to %s by proximity (%d candidates)",
        sub.agent_id,
        best.tool_use_id,
        len(candidates),
    )
    return _matched(best, MatchStrategy.PROXIMITY)
