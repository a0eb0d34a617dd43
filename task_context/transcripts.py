"""Claude Code transcript (JSONL) reader.

Each line of a session transcript is one JSON record. Only ``user``,
``assistant`` and ``system`` records are messages; housekeeping records
(``summary``, ``progress``, ``file-history-snapshot``, ...) and lines that fail
to parse are skipped without error. The host is the only writer and appends in
order, so file order is treated as chronological.

Record shapes (abridged):

    {"type": "assistant", "uuid": "...", "parentUuid": "...", "sessionId": "...",
     "timestamp": "2024-01-01T00:00:00Z", "isSidechain": false, "cwd": "/repo",
     "message": {"content": [{"type": "tool_use", "id": "toolu_01",
                              "name": "Write", "input": {...}}]}}

    {"type": "user", ..., "message": {"content": [{"type": "tool_result",
                                                   "tool_use_id": "toolu_01"}]},
     "toolUseResult": {"agentId": "a1b2c3"}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from task_context.errors import EmptyTranscriptError, TranscriptNotFoundError
from task_context.paths import agent_id_from_path
from task_context.tools import ToolInput, parse_tool_input

logger = logging.getLogger(__name__)

MESSAGE_TYPES = frozenset({"user", "assistant", "system"})


# --- Content items ---


class _Content(BaseModel):
    model_config = ConfigDict(extra="allow")


class ToolUseContent(_Content):
    type: Literal["tool_use"]
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class TextContent(_Content):
    type: Literal["text"]
    text: str = ""


class ToolResultContent(_Content):
    type: Literal["tool_result"]
    tool_use_id: str
    content: Any = None
    is_error: bool | None = None


class OtherContent(_Content):
    """Any content item this engine does not interpret (thinking, image, ...)."""

    type: str


ContentItem: TypeAlias = Annotated[
    ToolUseContent | ToolResultContent | TextContent | OtherContent,
    Field(union_mode="left_to_right"),
]


# --- Messages ---


class _BaseMessage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uuid: str
    parent_uuid: str | None = Field(default=None, alias="parentUuid")
    timestamp: str
    session_id: str = Field(alias="sessionId")
    is_sidechain: bool = Field(default=False, alias="isSidechain")
    cwd: str | None = None
    agent_id: str | None = Field(default=None, alias="agentId")


class UserPayload(_Content):
    role: str = "user"
    content: str | list[ContentItem] = ""


class AssistantPayload(_Content):
    role: str = "assistant"
    model: str | None = None
    content: list[ContentItem] = Field(default_factory=list)


class UserMessage(_BaseMessage):
    type: Literal["user"]
    message: UserPayload = Field(default_factory=UserPayload)
    tool_use_result: Any = Field(default=None, alias="toolUseResult")


class AssistantMessage(_BaseMessage):
    type: Literal["assistant"]
    message: AssistantPayload = Field(default_factory=AssistantPayload)


class SystemMessage(_BaseMessage):
    type: Literal["system"]
    subtype: str | None = None
    content: str | None = None
    level: str | None = None


Message: TypeAlias = Annotated[
    UserMessage | AssistantMessage | SystemMessage, Field(discriminator="type")
]

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


# --- Derived records ---


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ToolUse:
    """One tool invocation, flattened out of its assistant message."""

    id: str
    name: str
    input: ToolInput
    raw_input: dict[str, Any]
    timestamp: str
    index: int
    agent_id: str | None = None

    @property
    def time(self) -> datetime | None:
        return parse_timestamp(self.timestamp)


@dataclass(frozen=True)
class ToolResultRecord:
    tool_use_id: str
    is_error: bool
    timestamp: str
    agent_id: str | None = None


@dataclass
class Transcript:
    """Parsed transcript plus identity taken from its first message."""

    source_path: Path
    session_id: str
    is_sidechain: bool
    messages: list[UserMessage | AssistantMessage | SystemMessage]
    agent_id: str | None = None
    subagent_type: str | None = None
    cwd: str | None = None
    skipped_lines: int = 0
    _tool_uses: list[ToolUse] | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def start_timestamp(self) -> str:
        return self.messages[0].timestamp

    @property
    def start_time(self) -> datetime | None:
        return parse_timestamp(self.start_timestamp)

    def tool_uses(self) -> list[ToolUse]:
        """All tool_use items in file order."""
        if self._tool_uses is None:
            uses: list[ToolUse] = []
            for msg in self.messages:
                if not isinstance(msg, AssistantMessage):
                    continue
                for item in msg.message.content:
                    if isinstance(item, ToolUseContent):
                        uses.append(
                            ToolUse(
                                id=item.id,
                                name=item.name,
                                input=parse_tool_input(item.name, item.input),
                                raw_input=item.input,
                                timestamp=msg.timestamp,
                                index=len(uses),
                                agent_id=msg.agent_id,
                            )
                        )
            self._tool_uses = uses
        return self._tool_uses

    def tool_results(self) -> dict[str, ToolResultRecord]:
        """tool_result items keyed by the tool_use id they answer.

        ``agent_id`` is filled from the entry's ``toolUseResult.agentId``, which
        the host records on the result of a Task call.
        """
        results: dict[str, ToolResultRecord] = {}
        for msg in self.messages:
            if not isinstance(msg, UserMessage) or isinstance(msg.message.content, str):
                continue
            reported_agent = None
            if isinstance(msg.tool_use_result, dict):
                value = msg.tool_use_result.get("agentId")
                reported_agent = value if isinstance(value, str) else None
            for item in msg.message.content:
                if isinstance(item, ToolResultContent):
                    results[item.tool_use_id] = ToolResultRecord(
                        tool_use_id=item.tool_use_id,
                        is_error=bool(item.is_error),
                        timestamp=msg.timestamp,
                        agent_id=reported_agent,
                    )
        return results


# --- Parsing ---


def parse_transcript_line(line: str) -> UserMessage | AssistantMessage | SystemMessage | None:
    """Parse one JSONL line, returning None for anything that is not a valid message."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or data.get("type") not in MESSAGE_TYPES:
        return None
    try:
        return _MESSAGE_ADAPTER.validate_python(data)
    except ValidationError:
        return None


def _declared_subagent_type(msg: _BaseMessage) -> str | None:
    extra = msg.model_extra or {}
    for key in ("subagentType", "agentType"):
        value = extra.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def read_transcript(path: Path | str) -> Transcript:
    """Read a transcript file.

    Raises:
        TranscriptNotFoundError: The file does not exist.
        EmptyTranscriptError: No line parsed as a message.
    """
    path = Path(path)
    if not path.is_file():
        raise TranscriptNotFoundError(path)

    messages: list[UserMessage | AssistantMessage | SystemMessage] = []
    skipped = 0
    with path.open(encoding="utf-8", errors="replace") as f:
        for line in f:
            if not line.strip():
                continue
            msg = parse_transcript_line(line)
            if msg is None:
                skipped += 1
                continue
            messages.append(msg)

    if not messages:
        raise EmptyTranscriptError(path)
    if skipped:
        logger.debug("Skipped %d non-message lines in %s", skipped, path)

    first = messages[0]
    agent_id = first.agent_id or agent_id_from_path(path)
    return Transcript(
        source_path=path,
        session_id=first.session_id,
        is_sidechain=first.is_sidechain or agent_id is not None,
        messages=messages,
        agent_id=agent_id,
        subagent_type=_declared_subagent_type(first),
        cwd=first.cwd,
        skipped_lines=skipped,
    )
