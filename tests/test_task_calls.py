#!/usr/bin/env python3
"""Tests for the side-channel stores (task-calls.json, active-subagents.json)."""

import json
import threading

from task_context.task_calls import (
    AgentStartStore,
    TaskCallContext,
    TaskCallStore,
    save_agent_start_context,
    save_task_call_context,
)


def _context(tool_use_id: str, prompt: str = "add a login button") -> TaskCallContext:
    return TaskCallContext(
        tool_use_id=tool_use_id,
        agent_type="ui-developer",
        session_id="s1",
        timestamp="2024-01-01T00:00:00.000Z",
        prompt=prompt,
    )


def test_put_get_round_trip(tmp_path):
    store = TaskCallStore(tmp_path / "logs" / "task-calls.json")
    ctx = _context("toolu_1")

    store.put("toolu_1", ctx)

    assert store.get("toolu_1") == ctx


def test_delete_then_get_returns_none(tmp_path):
    store = TaskCallStore(tmp_path / "task-calls.json")
    store.put("toolu_1", _context("toolu_1"))

    store.delete("toolu_1")

    assert store.get("toolu_1") is None


def test_delete_is_idempotent(tmp_path):
    store = TaskCallStore(tmp_path / "task-calls.json")
    store.delete("never-there")  # no file yet
    store.put("toolu_1", _context("toolu_1"))
    store.delete("toolu_2")
    store.delete("toolu_1")
    store.delete("toolu_1")

    assert store.keys() == []


def test_second_take_returns_none(tmp_path):
    """At-most-once: a consumed record is gone even without another put."""
    store = TaskCallStore(tmp_path / "task-calls.json")
    ctx = _context("toolu_1")
    store.put("toolu_1", ctx)

    assert store.take("toolu_1") == ctx
    assert store.take("toolu_1") is None
    assert store.get("toolu_1") is None


def test_get_then_delete_cycle_twice(tmp_path):
    store = TaskCallStore(tmp_path / "task-calls.json")
    store.put("toolu_1", _context("toolu_1"))

    first = store.get("toolu_1")
    store.delete("toolu_1")
    second = store.get("toolu_1")
    store.delete("toolu_1")

    assert first is not None
    assert second is None


def test_put_keeps_other_records(tmp_path):
    store = TaskCallStore(tmp_path / "task-calls.json")
    store.put("toolu_1", _context("toolu_1", "one"))
    store.put("toolu_2", _context("toolu_2", "two"))
    store.put("toolu_1", _context("toolu_1", "one again"))

    assert sorted(store.keys()) == ["toolu_1", "toolu_2"]
    assert store.get("toolu_1").prompt == "one again"
    assert store.get("toolu_2").prompt == "two"


def test_document_uses_camel_case_keys(tmp_path):
    path = tmp_path / "task-calls.json"
    TaskCallStore(path).put("toolu_1", _context("toolu_1"))

    data = json.loads(path.read_text())

    assert data == {
        "toolu_1": {
            "toolUseId": "toolu_1",
            "agentType": "ui-developer",
            "sessionId": "s1",
            "timestamp": "2024-01-01T00:00:00.000Z",
            "prompt": "add a login button",
        }
    }


def test_corrupt_document_reads_as_empty_and_is_replaced(tmp_path):
    path = tmp_path / "task-calls.json"
    path.write_text("{not json")
    store = TaskCallStore(path)

    assert store.get("toolu_1") is None

    store.put("toolu_1", _context("toolu_1"))
    assert list(json.loads(path.read_text())) == ["toolu_1"]


def test_malformed_record_is_ignored(tmp_path):
    path = tmp_path / "task-calls.json"
    path.write_text(json.dumps({"toolu_1": {"prompt": "no ids"}}))

    assert TaskCallStore(path).get("toolu_1") is None


def test_concurrent_puts_do_not_lose_updates(tmp_path):
    """Many writers at once: every record survives the read-modify-write."""
    store_path = tmp_path / "task-calls.json"
    errors = []

    def writer(i: int) -> None:
        try:
            TaskCallStore(store_path).put(f"toolu_{i}", _context(f"toolu_{i}", f"prompt {i}"))
        except Exception as e:  # surfaced via the assertion below
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(TaskCallStore(store_path).keys()) == sorted(f"toolu_{i}" for i in range(20))


def test_save_task_call_context_uses_project_convention(repo_dir, settings):
    ctx = save_task_call_context(
        tool_use_id="toolu_9",
        agent_type="Explore",
        session_id="s1",
        prompt="find the router",
        cwd=repo_dir,
        settings=settings,
    )

    path = repo_dir / ".claude" / "logs" / "task-calls.json"
    assert path.exists()
    assert ctx.timestamp.endswith("Z")
    assert TaskCallStore(path).get("toolu_9") == ctx


def test_save_agent_start_context_links_pending_task(main_transcript, repo_dir, settings):
    main_transcript.spawn("toolu_old", "Explore", "old", "2024-01-01T00:00:00Z")
    main_transcript.tool_result("toolu_old", "2024-01-01T00:00:30Z", agent_id="zz")
    main_transcript.spawn("toolu_new", "Explore", "new work", "2024-01-01T00:01:00Z")

    ctx = save_agent_start_context(
        agent_id="a1",
        agent_type="Explore",
        session_id="s1",
        cwd=repo_dir,
        transcript_path=main_transcript.path,
        settings=settings,
    )

    assert ctx.tool_use_id == "toolu_new"
    assert ctx.prompt == "new work"
    stored = AgentStartStore.for_project(repo_dir, settings).get("a1")
    assert stored == ctx
    assert (repo_dir / ".claude" / "state" / "active-subagents.json").exists()
