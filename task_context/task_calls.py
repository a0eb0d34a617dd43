"""Side-channel stores shared between hook processes.

Context known only at spawn time (the literal prompt, the requested agent
type) is gone by the time a SubagentStop hook analyses the sub-agent's
transcript. The spawning process writes it here; a later, unrelated process
reads it once and deletes it.

Two stores share one implementation:

- ``TaskCallStore``: ``.claude/logs/task-calls.json``, keyed by the Task
  tool_use id, written at PreToolUse[Task].
- ``AgentStartStore``: ``.claude/state/active-subagents.json``, keyed by agent
  id, written at SubagentStart.

Each store is one JSON object on disk. Every read-modify-write holds a
``FileLock`` on ``<file>.lock`` and replaces the document atomically, so two
hooks writing at the same instant cannot drop each other's record.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generic, TypeVar

from filelock import FileLock, Timeout
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from task_context.config import TaskContextSettings, load_settings
from task_context.errors import TaskCallStoreError
from task_context.matcher import find_pending_task_call
from task_context.paths import get_active_subagents_path, get_task_calls_path
from task_context.transcripts import read_transcript

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Current time as ``2024-01-01T00:00:00.000Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# --- Records ---


class TaskCallContext(BaseModel):
    """Spawn-time context of one Task call, keyed by its tool_use id."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    tool_use_id: str = Field(alias="toolUseId")
    agent_type: str = Field(alias="agentType")
    session_id: str = Field(alias="sessionId")
    timestamp: str
    prompt: str = ""


class AgentStartContext(BaseModel):
    """Context captured when a sub-agent starts, keyed by agent id."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    agent_id: str = Field(alias="agentId")
    agent_type: str = Field(alias="agentType")
    session_id: str = Field(alias="sessionId")
    timestamp: str
    prompt: str = ""
    tool_use_id: str = Field(default="", alias="toolUseId")


RecordT = TypeVar("RecordT", bound=BaseModel)


# --- Store ---


class JsonRecordStore(Generic[RecordT]):
    """Key/value store of pydantic records in a single JSON document."""

    record_model: type[RecordT]

    def __init__(self, path: Path | str, lock_timeout: float = 10.0):
        self.path = Path(path)
        self.lock_timeout = lock_timeout

    @property
    def lock_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".lock")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(self.lock_path, timeout=self.lock_timeout)
        try:
            with lock:
                yield
        except Timeout as e:
            raise TaskCallStoreError(
                f"Timed out after {self.lock_timeout}s waiting for {self.lock_path}", self.path
            ) from e

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable store %s, treating as empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store %s is not a JSON object, treating as empty", self.path)
            return {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        fd, temp_path_str = tempfile.mkstemp(
            prefix=f".{self.path.name}-", suffix=".tmp", dir=str(self.path.parent)
        )
        temp_path = Path(temp_path_str)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_path.replace(self.path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise TaskCallStoreError(f"Failed to write {self.path}: {e}", self.path) from e

    def _to_record(self, key: str, raw: Any) -> RecordT | None:
        if raw is None:
            return None
        try:
            return self.record_model.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding malformed record %r in %s: %s", key, self.path, e)
            return None

    def put(self, key: str, record: RecordT) -> None:
        """Insert or replace ``key``, keeping every other record."""
        with self._locked():
            data = self._read()
            data[key] = record.model_dump(mode="json", by_alias=True)
            self._write(data)

    def get(self, key: str) -> RecordT | None:
        # Unlocked read; writers replace the file atomically
        return self._to_record(key, self._read().get(key))

    def delete(self, key: str) -> None:
        """Remove ``key``. Absent keys (and absent files) are a no-op."""
        if not self.path.exists():
            return
        with self._locked():
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)

    def take(self, key: str) -> RecordT | None:
        """Read and delete ``key`` under one lock; a second take returns None."""
        if not self.path.exists():
            return None
        with self._locked():
            data = self._read()
            if key not in data:
                return None
            raw = data.pop(key)
            self._write(data)
        return self._to_record(key, raw)

    def keys(self) -> list[str]:
        return list(self._read())


class TaskCallStore(JsonRecordStore[TaskCallContext]):
    record_model = TaskCallContext

    @classmethod
    def for_project(
        cls, cwd: Path | str, settings: TaskContextSettings | None = None
    ) -> TaskCallStore:
        settings = settings or load_settings(cwd)
        return cls(get_task_calls_path(cwd, settings), settings.lock_timeout_seconds)


class AgentStartStore(JsonRecordStore[AgentStartContext]):
    record_model = AgentStartContext

    @classmethod
    def for_project(
        cls, cwd: Path | str, settings: TaskContextSettings | None = None
    ) -> AgentStartStore:
        settings = settings or load_settings(cwd)
        return cls(get_active_subagents_path(cwd, settings), settings.lock_timeout_seconds)


# --- Hook-facing helpers ---


def save_task_call_context(
    *,
    tool_use_id: str,
    agent_type: str,
    session_id: str,
    prompt: str,
    cwd: Path | str,
    path: Path | str | None = None,
    settings: TaskContextSettings | None = None,
) -> TaskCallContext:
    """Record a Task call at PreToolUse for later lookup by tool_use id."""
    settings = settings or load_settings(cwd)
    store = (
        TaskCallStore(path, settings.lock_timeout_seconds)
        if path
        else TaskCallStore.for_project(cwd, settings)
    )
    context = TaskCallContext(
        tool_use_id=tool_use_id,
        agent_type=agent_type,
        session_id=session_id,
        timestamp=utc_timestamp(),
        prompt=prompt,
    )
    store.put(tool_use_id, context)
    logger.debug("Saved task call context %s (%s) to %s", tool_use_id, agent_type, store.path)
    return context


def save_agent_start_context(
    *,
    agent_id: str,
    agent_type: str,
    session_id: str,
    cwd: Path | str,
    transcript_path: Path | str,
    path: Path | str | None = None,
    settings: TaskContextSettings | None = None,
) -> AgentStartContext:
    """Record a starting sub-agent together with the Task call that spawned it.

    ``transcript_path`` is the main session transcript; the most recent Task
    call of ``agent_type`` that has no result yet is taken as the spawner.

    Raises:
        TranscriptNotFoundError, EmptyTranscriptError: From reading the transcript.
    """
    settings = settings or load_settings(cwd)
    parent = read_transcript(transcript_path)
    pending = find_pending_task_call(parent, agent_type, settings=settings)

    context = AgentStartContext(
        agent_id=agent_id,
        agent_type=agent_type,
        session_id=session_id,
        timestamp=utc_timestamp(),
        prompt=pending.prompt if pending else "",
        tool_use_id=pending.tool_use_id if pending else "",
    )
    store = (
        AgentStartStore(path, settings.lock_timeout_seconds)
        if path
        else AgentStartStore.for_project(cwd, settings)
    )
    store.put(agent_id, context)
    return context
