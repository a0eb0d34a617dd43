"""Shared fixtures: JSONL transcript writers laid out like ~/.claude/projects."""

import json
from pathlib import Path
from typing import Any

import pytest

from task_context.config import TaskContextSettings

SESSION_ID = "3f2a9c1e-5b7d-4e8f-9a0b-1c2d3e4f5a6b"


class TranscriptWriter:
    """Appends Claude Code style records to a .jsonl file as they are added."""

    def __init__(self, path: Path, session_id: str, cwd: Path, agent_id: str | None = None):
        self.path = path
        self.session_id = session_id
        self.cwd = cwd
        self.agent_id = agent_id
        self._count = 0
        self._last_uuid: str | None = None
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()

    def _append(self, record: dict[str, Any]) -> "TranscriptWriter":
        with self.path.open("a") as f:
            f.write(json.dumps(record) + "\n")
        return self

    def _base(self, type_: str, timestamp: str, **extra: Any) -> dict[str, Any]:
        self._count += 1
        uuid = f"{self.path.stem}-{self._count:04d}"
        record = {
            "type": type_,
            "uuid": uuid,
            "parentUuid": self._last_uuid,
            "timestamp": timestamp,
            "sessionId": self.session_id,
            "isSidechain": self.agent_id is not None,
            "cwd": str(self.cwd),
            "version": "2.0.0",
        }
        if self.agent_id:
            record["agentId"] = self.agent_id
        record.update(extra)
        self._last_uuid = uuid
        return record

    def user_text(self, text: str, timestamp: str, **extra: Any) -> "TranscriptWriter":
        return self._append(
            self._base("user", timestamp, message={"role": "user", "content": text}, **extra)
        )

    def tool_use(
        self, tool_use_id: str, name: str, tool_input: dict[str, Any], timestamp: str
    ) -> "TranscriptWriter":
        content = [{"type": "tool_use", "id": tool_use_id, "name": name, "input": tool_input}]
        return self._append(
            self._base(
                "assistant",
                timestamp,
                message={"role": "assistant", "model": "claude-test", "content": content},
            )
        )

    def tool_result(
        self,
        tool_use_id: str,
        timestamp: str,
        *,
        agent_id: str | None = None,
        is_error: bool = False,
        content: str = "ok",
    ) -> "TranscriptWriter":
        extra: dict[str, Any] = {}
        if agent_id:
            extra["toolUseResult"] = {"agentId": agent_id, "status": "completed"}
        item = {"type": "tool_result", "tool_use_id": tool_use_id, "content": content}
        if is_error:
            item["is_error"] = True
        return self._append(
            self._base("user", timestamp, message={"role": "user", "content": [item]}, **extra)
        )

    def spawn(
        self, tool_use_id: str, subagent_type: str, prompt: str, timestamp: str
    ) -> "TranscriptWriter":
        return self.tool_use(
            tool_use_id,
            "Task",
            {"subagent_type": subagent_type, "prompt": prompt, "description": prompt[:20]},
            timestamp,
        )

    def raw(self, line: str) -> "TranscriptWriter":
        with self.path.open("a") as f:
            f.write(line + "\n")
        return self


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Project working directory (where .claude/ lives)."""
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
def transcripts_dir(tmp_path: Path) -> Path:
    path = tmp_path / "projects" / "-repo"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def settings() -> TaskContextSettings:
    return TaskContextSettings()


@pytest.fixture
def main_transcript(transcripts_dir: Path, repo_dir: Path) -> TranscriptWriter:
    return TranscriptWriter(transcripts_dir / f"{SESSION_ID}.jsonl", SESSION_ID, repo_dir)


@pytest.fixture
def agent_transcript(transcripts_dir: Path, repo_dir: Path):
    """Factory: agent_transcript("a1") -> writer for agent-a1.jsonl."""

    def _make(agent_id: str, directory: Path | None = None) -> TranscriptWriter:
        target = directory or transcripts_dir
        return TranscriptWriter(
            target / f"agent-{agent_id}.jsonl", SESSION_ID, repo_dir, agent_id=agent_id
        )

    return _make


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(TaskContextSettings.model_fields):
        monkeypatch.delenv(f"TASK_CONTEXT_{name.upper()}", raising=False)
    monkeypatch.delenv("CLAUDE_PROJECT_DIR", raising=False)


@pytest.fixture
def session_id() -> str:
    return SESSION_ID
