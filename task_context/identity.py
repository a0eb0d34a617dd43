"""Session identity: main agent vs sub-agent.

A transcript belongs to a sub-agent iff an agent id is attached to it. The
transcript-level helpers are pure; the ``*_path`` style helpers read the file
first and are what hooks call with ``transcript_path`` from their input.
"""

from __future__ import annotations

from pathlib import Path

from task_context.transcripts import AssistantMessage, ToolUseContent, Transcript, read_transcript


def is_main_session(transcript: Transcript) -> bool:
    return not transcript.is_sidechain


def agent_id(transcript: Transcript) -> str | None:
    return transcript.agent_id


def declared_subagent_type(transcript: Transcript) -> str | None:
    return transcript.subagent_type


def was_tool_event_main_agent(transcript_path: Path | str, tool_use_id: str) -> bool:
    """Check whether a tool_use was issued by the main agent.

    A tool use whose message carries an agentId came from a sub-agent. If the
    id cannot be found at all, the event is assumed to be the main agent's, so
    callers never skip legitimate main-agent work.
    """
    transcript = read_transcript(transcript_path)
    for msg in transcript.messages:
        if not isinstance(msg, AssistantMessage):
            continue
        for item in msg.message.content:
            if isinstance(item, ToolUseContent) and item.id == tool_use_id:
                return not msg.agent_id
    return True


def is_main_agent_transcript(transcript_path: Path | str) -> bool:
    return is_main_session(read_transcript(transcript_path))


def is_subagent_type(transcript_path: Path | str, subagent_type: str) -> bool:
    """True if the transcript declares the given sub-agent type (e.g. "Explore")."""
    return declared_subagent_type(read_transcript(transcript_path)) == subagent_type


def get_transcript_agent_id(transcript_path: Path | str) -> str | None:
    return agent_id(read_transcript(transcript_path))
