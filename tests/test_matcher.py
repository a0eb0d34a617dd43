#!/usr/bin/env python3
"""Tests for locating the spawning Task call of a sub-agent."""

from task_context.config import TaskContextSettings
from task_context.matcher import (
    MatchStrategy,
    collect_spawn_calls,
    find_pending_task_call,
    match_task_call,
)
from task_context.transcripts import read_transcript


def test_last_spawn_before_start_wins(main_transcript, agent_transcript):
    """T1 < T < T2: the call at T1 is chosen, not the later one."""
    main_transcript.spawn("toolu_t1", "Explore", "first", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_t2", "Explore", "second", "2024-01-01T00:00:08Z")
    sub = agent_transcript("a1")
    sub.user_text("first", "2024-01-01T00:00:04Z", subagentType="Explore")

    match = match_task_call(read_transcript(main_transcript.path), read_transcript(sub.path))

    assert match is not None
    assert match.tool_use_id == "toolu_t1"
    assert match.prompt == "first"
    assert match.strategy == MatchStrategy.PROXIMITY


def test_latest_of_several_earlier_calls_wins(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_a", "Explore", "a", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_b", "Explore", "b", "2024-01-01T00:00:03Z")
    sub = agent_transcript("a1")
    sub.user_text("b", "2024-01-01T00:00:05Z")

    match = match_task_call(read_transcript(main_transcript.path), read_transcript(sub.path))

    assert match.tool_use_id == "toolu_b"


def test_equal_timestamps_resolve_to_later_call(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_a", "Explore", "a", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_b", "Explore", "b", "2024-01-01T00:00:00Z")
    sub = agent_transcript("a1")
    sub.user_text("b", "2024-01-01T00:00:01Z")

    match = match_task_call(read_transcript(main_transcript.path), read_transcript(sub.path))

    assert match.tool_use_id == "toolu_b"


def test_agent_id_in_tool_result_is_authoritative(main_transcript, agent_transcript):
    """An exact agentId link beats a closer proximity candidate."""
    main_transcript.spawn("toolu_linked", "Explore", "linked", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_close", "Explore", "close", "2024-01-01T00:00:09Z")
    main_transcript.tool_result("toolu_linked", "2024-01-01T00:05:00Z", agent_id="a1")
    sub = agent_transcript("a1")
    sub.user_text("linked", "2024-01-01T00:00:10Z")

    match = match_task_call(read_transcript(main_transcript.path), read_transcript(sub.path))

    assert match.tool_use_id == "toolu_linked"
    assert match.strategy == MatchStrategy.AGENT_ID


def test_calls_answered_for_other_agents_are_excluded(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_mine", "Explore", "mine", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_theirs", "Explore", "theirs", "2024-01-01T00:00:01Z")
    main_transcript.tool_result("toolu_theirs", "2024-01-01T00:00:20Z", agent_id="other")
    sub = agent_transcript("a1")
    sub.user_text("mine", "2024-01-01T00:00:02Z")

    match = match_task_call(read_transcript(main_transcript.path), read_transcript(sub.path))

    assert match.tool_use_id == "toolu_mine"


def test_agent_id_link_beats_guessed_tool_use_id(main_transcript, agent_transcript):
    """Parallel same-type spawns: the start-time guess names the sibling's call."""
    main_transcript.spawn("toolu_1", "Explore", "prompt one", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_2", "Explore", "prompt two", "2024-01-01T00:00:00Z")
    main_transcript.tool_result("toolu_1", "2024-01-01T00:01:00Z", agent_id="a1")
    sub = agent_transcript("a1")
    sub.user_text("prompt one", "2024-01-01T00:00:01Z")

    match = match_task_call(
        read_transcript(main_transcript.path), read_transcript(sub.path), tool_use_id="toolu_2"
    )

    assert match.tool_use_id == "toolu_1"
    assert match.prompt == "prompt one"
    assert match.strategy == MatchStrategy.AGENT_ID


def test_guess_answered_for_another_agent_is_rejected(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_1", "Explore", "prompt one", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_2", "Explore", "prompt two", "2024-01-01T00:00:00Z")
    main_transcript.tool_result("toolu_2", "2024-01-01T00:01:00Z", agent_id="a2")
    sub = agent_transcript("a1")
    sub.user_text("prompt one", "2024-01-01T00:00:01Z")

    match = match_task_call(
        read_transcript(main_transcript.path), read_transcript(sub.path), tool_use_id="toolu_2"
    )

    assert match.tool_use_id == "toolu_1"
    assert match.strategy == MatchStrategy.PROXIMITY


def test_known_tool_use_id_is_used_without_agent_link(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_a", "Explore", "a", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_b", "Explore", "b", "2024-01-01T00:00:03Z")
    sub = agent_transcript("a1")
    sub.user_text("a", "2024-01-01T00:00:05Z")

    match = match_task_call(
        read_transcript(main_transcript.path), read_transcript(sub.path), tool_use_id="toolu_a"
    )

    assert match.tool_use_id == "toolu_a"
    assert match.strategy == MatchStrategy.TOOL_USE_ID


def test_type_filter_uses_declared_or_hinted_type(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_plan", "Plan", "plan it", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_explore", "Explore", "look", "2024-01-01T00:00:02Z")
    sub = agent_transcript("a1")
    sub.user_text("plan it", "2024-01-01T00:00:03Z")
    parent, child = read_transcript(main_transcript.path), read_transcript(sub.path)

    assert match_task_call(parent, child).tool_use_id == "toolu_explore"
    assert match_task_call(parent, child, subagent_type="Plan").tool_use_id == "toolu_plan"


def test_calls_outside_tolerance_window_do_not_match(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_old", "Explore", "old", "2024-01-01T00:00:00Z")
    main_transcript.spawn("toolu_future", "Explore", "future", "2024-01-01T00:01:00Z")
    sub = agent_transcript("a1")
    sub.user_text("?", "2024-01-01T00:00:30Z")

    match = match_task_call(read_transcript(main_transcript.path), read_transcript(sub.path))

    assert match is None


def test_tolerance_window_is_configurable(main_transcript, agent_transcript):
    main_transcript.spawn("toolu_old", "Explore", "old", "2024-01-01T00:00:00Z")
    sub = agent_transcript("a1")
    sub.user_text("?", "2024-01-01T00:00:30Z")
    parent, child = read_transcript(main_transcript.path), read_transcript(sub.path)

    wide = TaskContextSettings(match_tolerance_seconds=60)
    narrow = TaskContextSettings(match_tolerance_seconds=0)

    assert match_task_call(parent, child, settings=wide).tool_use_id == "toolu_old"
    assert match_task_call(parent, child, settings=narrow) is None


def test_no_spawn_calls_returns_none(main_transcript, agent_transcript):
    main_transcript.user_text("just chatting", "2024-01-01T00:00:00Z")
    sub = agent_transcript("a1")
    sub.user_text("?", "2024-01-01T00:00:01Z")

    assert match_task_call(read_transcript(main_transcript.path), read_transcript(sub.path)) is None


def test_collect_spawn_calls_defaults(main_transcript):
    main_transcript.tool_use("toolu_1", "Task", {"prompt": "no type"}, "2024-01-01T00:00:00Z")
    main_transcript.tool_use("toolu_2", "Agent", {"subagent_type": "Plan"}, "2024-01-01T00:00:01Z")
    main_transcript.tool_use("toolu_3", "Bash", {"command": "ls"}, "2024-01-01T00:00:02Z")

    calls = collect_spawn_calls(read_transcript(main_transcript.path))

    assert [(c.tool_use_id, c.subagent_type, c.prompt) for c in calls] == [
        ("toolu_1", "unknown", "no type"),
        ("toolu_2", "Plan", ""),
    ]


def test_find_pending_task_call(main_transcript):
    main_transcript.spawn("toolu_done", "Explore", "done", "2024-01-01T00:00:00Z")
    main_transcript.tool_result("toolu_done", "2024-01-01T00:00:10Z")
    main_transcript.spawn("toolu_p1", "Explore", "pending one", "2024-01-01T00:00:20Z")
    main_transcript.spawn("toolu_p2", "Explore", "pending two", "2024-01-01T00:00:30Z")
    main_transcript.spawn("toolu_plan", "Plan", "plan", "2024-01-01T00:00:40Z")
    parent = read_transcript(main_transcript.path)

    assert find_pending_task_call(parent, "Explore").tool_use_id == "toolu_p2"
    assert find_pending_task_call(parent, "Plan").tool_use_id == "toolu_plan"
    assert find_pending_task_call(parent, "general-purpose") is None
