"""
Test Suite for MemoryManager

Context composition before a reply and turn recording after it.
Run with: pytest tests/test_memory_manager.py -v
"""

import sqlite3
import pytest
from unittest.mock import Mock

from modules.memory import MemoryManager, Memory, Sector, MemorySearchError
from modules.memory.memory_manager import CONTEXT_HEADER
from utils.config import MemoryConfig

DAY = 24 * 60 * 60


def context_lines(context):
    lines = context.split("\n")
    assert lines[0] == CONTEXT_HEADER
    return lines[1:]


class TestBuildContext:
    """Relevance + recency merge"""

    def test_no_memories_gives_empty_string(self, manager):
        assert manager.build_context("nobody", "what theme do I like?") == ""

    def test_format(self, manager, store):
        store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)

        context = manager.build_context("42", "dark mode")

        assert context == "[Memory context]\n- I prefer dark mode in every app (semantic)"

    def test_relevant_memories_come_first(self, manager, store, clock):
        store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)
        for i in range(6):
            clock.advance(60)
            store.insert("42", f"we discussed the weekend plans part {i}", Sector.EPISODIC)

        lines = context_lines(manager.build_context("42", "dark mode"))

        assert lines[0] == "- I prefer dark mode in every app (semantic)"
        # 1 relevant + 5 recent
        assert len(lines) == 6

    def test_no_duplicates(self, manager, store):
        store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)

        lines = context_lines(manager.build_context("42", "dark mode"))

        assert len(lines) == 1

    def test_capped_at_max_memories(self, store):
        config = MemoryConfig(
            db_path=":memory:",
            relevance_limit=6,
            recency_limit=6,
            max_context_memories=8
        )
        manager = MemoryManager(store, config=config)
        for i in range(20):
            store.insert("42", f"note {i} about coffee brewing", Sector.EPISODIC)

        lines = context_lines(manager.build_context("42", "coffee"))

        assert len(lines) == 8

    def test_selected_memories_are_reinforced(self, manager, store, clock):
        memory_id = store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)
        clock.advance(30)

        manager.build_context("42", "dark mode")

        memory = store.get_memory(memory_id)
        assert memory.salience == pytest.approx(1.1)
        assert memory.accessed_at == clock.now

    def test_other_owners_not_reinforced(self, manager, store):
        other = store.insert("alice", "I prefer dark mode in every app", Sector.SEMANTIC)

        assert manager.build_context("bob", "dark mode") == ""
        assert store.get_memory(other).salience == 1.0

    def test_garbage_query_uses_recency(self, manager, store):
        store.insert("42", "We talked about the football match", Sector.EPISODIC)

        lines = context_lines(manager.build_context("42", "?!?!"))

        assert lines == ["- We talked about the football match (episodic)"]

    def test_search_failure_falls_back_to_recent(self, manager, store):
        store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)
        store._get_connection().execute("DROP TABLE memories_fts")

        context = manager.build_context("42", "dark mode")

        assert context_lines(context) == ["- I prefer dark mode in every app (semantic)"]

    def test_recent_failure_keeps_relevant_results(self, config):
        memory = Memory(id=1, owner="42", content="I prefer dark mode in every app",
                        sector=Sector.SEMANTIC)
        store = Mock()
        store.search.return_value = [memory]
        store.recent.side_effect = sqlite3.OperationalError("database is locked")
        manager = MemoryManager(store, config=config)

        context = manager.build_context("42", "dark mode")

        assert context == "[Memory context]\n- I prefer dark mode in every app (semantic)"
        store.touch.assert_called_once_with(1, owner="42")

    def test_touch_failure_still_returns_context(self, manager, store, monkeypatch):
        store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)

        def locked_touch(*args, **kwargs):
            raise RuntimeError("locked")

        monkeypatch.setattr(store, 'touch', locked_touch)

        context = manager.build_context("42", "dark")

        assert context == "[Memory context]\n- I prefer dark mode in every app (semantic)"

    def test_total_failure_gives_empty_string(self, config):
        store = Mock()
        store.search.side_effect = MemorySearchError("index gone")
        store.recent.side_effect = sqlite3.OperationalError("database is locked")
        manager = MemoryManager(store, config=config)

        assert manager.build_context("42", "dark mode") == ""
        store.touch.assert_not_called()


class TestRecordTurn:
    """Classification-driven writes"""

    def test_preference_is_semantic(self, manager, store):
        result = manager.record_turn(
            "42",
            "I prefer dark mode in every app",
            "Noted, dark mode it is for everything."
        )

        assert result.should_store
        assert result.sector == Sector.SEMANTIC
        assert result.store_reply

        memories = store.list_for_display("42")
        assert {(m.content, m.sector) for m in memories} == {
            ("I prefer dark mode in every app", Sector.SEMANTIC),
            ("Noted, dark mode it is for everything.", Sector.EPISODIC),
        }

    def test_question_is_episodic(self, manager, store):
        result = manager.record_turn("42", "What's the weather tomorrow?")

        assert result.sector == Sector.EPISODIC
        assert store.count("42") == 1

    def test_short_utterance_is_skipped(self, manager, store):
        result = manager.record_turn("42", "thanks!", "You're very welcome, any time at all.")

        assert not result.should_store
        assert store.count("42") == 0

    def test_commands_are_skipped(self, manager, store):
        result = manager.record_turn("42", "/memories show me everything please")

        assert not result.should_store
        assert store.count("42") == 0

    def test_short_reply_not_stored(self, manager, store):
        manager.record_turn("42", "Remember that my sister lives in Lyon", "Got it.")

        memories = store.list_for_display("42")
        assert len(memories) == 1
        assert memories[0].sector == Sector.SEMANTIC

    def test_write_errors_propagate(self, config):
        store = Mock()
        store.insert.side_effect = sqlite3.OperationalError("disk I/O error")
        manager = MemoryManager(store, config=config)

        with pytest.raises(sqlite3.OperationalError):
            manager.record_turn("42", "I prefer dark mode in every app")

    def test_recorded_turn_is_recalled(self, manager):
        manager.record_turn("42", "I prefer dark mode in every app", "Noted!")

        context = manager.build_context("42", "which mode do I prefer?")

        assert "I prefer dark mode in every app (semantic)" in context


class TestMaintenance:

    def test_list_recent_is_read_only(self, manager, store):
        memory_id = store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)

        memories = manager.list_recent("42")

        assert [m.id for m in memories] == [memory_id]
        assert store.get_memory(memory_id).salience == 1.0

    def test_run_decay_sweep_uses_config(self, manager, store, clock):
        memory_id = store.insert("42", "something said two days ago", Sector.EPISODIC)
        clock.advance(2 * DAY)

        result = manager.run_decay_sweep()

        assert result.decayed == 1
        assert store.get_memory(memory_id).salience == pytest.approx(0.98)

    def test_stats_include_config(self, manager, store):
        store.insert("42", "I prefer dark mode in every app", Sector.SEMANTIC)

        stats = manager.get_stats()

        assert stats['total_memories'] == 1
        assert stats['config']['decay_rate'] == 0.98
        assert stats['config']['max_context_memories'] == 8
