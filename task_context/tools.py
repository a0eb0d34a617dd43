"""Typed tool inputs, keyed by tool name.

Transcripts store each tool_use ``input`` as an open JSON object. Known tools
get a concrete model; everything else (new tools, MCP tools, or a known tool
whose payload does not validate) becomes ``UnknownToolInput`` so parsing never
fails on unfamiliar data.
"""

from __future__ import annotations

import logging
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class _ToolInput(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class WriteInput(_ToolInput):
    """Create or fully overwrite a file."""

    file_path: str
    content: str = ""


class EditInput(_ToolInput):
    """Targeted in-place string replacement."""

    file_path: str
    old_string: str = ""
    new_string: str = ""
    replace_all: bool = False


class MultiEditInput(_ToolInput):
    file_path: str
    edits: list[dict[str, Any]] = Field(default_factory=list)


class NotebookEditInput(_ToolInput):
    notebook_path: str
    new_source: str = ""
    edit_mode: str | None = None


class BashInput(_ToolInput):
    command: str
    description: str | None = None
    run_in_background: bool = False


class SpawnInput(_ToolInput):
    """Input of the Task (a.k.a. Agent) tool that launches a sub-agent."""

    subagent_type: str | None = None
    prompt: str = ""
    description: str = ""


class UnknownToolInput(BaseModel):
    """Fallback for tools without a dedicated model."""

    model_config = ConfigDict(frozen=True)

    tool_name: str
    data: dict[str, Any] = Field(default_factory=dict)


ToolInput: TypeAlias = (
    WriteInput
    | EditInput
    | MultiEditInput
    | NotebookEditInput
    | BashInput
    | SpawnInput
    | UnknownToolInput
)

TOOL_INPUT_MODELS: dict[str, type[_ToolInput]] = {
    "Write": WriteInput,
    "Edit": EditInput,
    "MultiEdit": MultiEditInput,
    "NotebookEdit": NotebookEditInput,
    "Bash": BashInput,
    "Task": SpawnInput,
    "Agent": SpawnInput,
}

FILE_TOOL_INPUTS = (WriteInput, EditInput, MultiEditInput, NotebookEditInput)


def parse_tool_input(tool_name: str, data: Any) -> ToolInput:
    """Validate a raw tool input against the model registered for ``tool_name``."""
    if not isinstance(data, dict):
        return UnknownToolInput(tool_name=tool_name)
    model = TOOL_INPUT_MODELS.get(tool_name)
    if model is None:
        return UnknownToolInput(tool_name=tool_name, data=data)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug("Unrecognized %s input, keeping raw payload: %s", tool_name, e)
        return UnknownToolInput(tool_name=tool_name, data=data)


def target_path(tool_input: ToolInput) -> str | None:
    """File a file-editing tool operates on, or None for other tools."""
    if isinstance(tool_input, NotebookEditInput):
        return tool_input.notebook_path
    if isinstance(tool_input, (WriteInput, EditInput, MultiEditInput)):
        return tool_input.file_path
    return None
