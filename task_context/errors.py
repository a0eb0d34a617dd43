"""Typed failures raised by the task-context engine.

Reading and resolving transcripts fails loudly: a missing or empty file will
not fix itself on retry, so these propagate to the caller. Failing to find
the spawning Task call is NOT an error and has no exception here; the
matcher returns None and the assembler proceeds with reduced context.
"""

from __future__ import annotations

from pathlib import Path


class TaskContextError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, path: Path | str | None = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class TranscriptNotFoundError(TaskContextError, FileNotFoundError):
    """Transcript file does not exist."""

    def __init__(self, path: Path | str):
        super().__init__(f"Transcript not found: {path}", path)


class EmptyTranscriptError(TaskContextError):
    """Transcript exists but contains no valid user/assistant/system messages."""

    def __init__(self, path: Path | str):
        super().__init__(f"Transcript has no valid messages: {path}", path)


class InvalidAgentTranscriptError(TaskContextError):
    """Path passed as a sub-agent transcript is not one.

    Raised when the filename is not ``agent-<id>.jsonl`` or when no agent id
    can be recovered from its contents.
    """


class ParentTranscriptNotFoundError(TaskContextError):
    """The main session transcript for a sub-agent could not be located."""

    def __init__(self, path: Path | str):
        super().__init__(f"Parent session transcript not found: {path}", path)


class TaskCallStoreError(TaskContextError):
    """The side-channel document could not be locked or written."""
