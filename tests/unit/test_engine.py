"""Tests for engine.py"""
import json

import pytest

from blocksync import BlockSyncEngine, BlockSyncValidationError, ManualScheduler, StoredBlock
from blocksync.document import Document, citation, paragraph
from blocksync.models import BlockLocation

HELLO_WORLD = Document([paragraph("Hello"), paragraph("World")])


@pytest.fixture
def loaded(engine):
    """Engine holding ``Hello`` (a1) and ``World`` (a2)."""
    engine.assign_ids_for_flat_list(["a1", "a2"], HELLO_WORLD)
    return engine


# =========================================================================
# Construction
# =========================================================================


class TestConstruction:
    def test_kwargs_build_config(self):
        with BlockSyncEngine(proximity_window=5, scheduler=ManualScheduler()) as engine:
            assert engine.config.proximity_window == 5

    def test_kwargs_override_config(self, config):
        with BlockSyncEngine(config, content_matching=False) as engine:
            assert engine.config.content_matching is False
        assert config.content_matching is True

    def test_engines_are_independent(self, config):
        with BlockSyncEngine(config) as first, BlockSyncEngine(config) as second:
            first.assign_ids_for_flat_list(["x"], Document([paragraph("a")]))
            assert second.block_ids() == {}

    def test_custom_inline_renderer(self, config):
        doc = Document([paragraph("See ", citation("smith"))])
        with BlockSyncEngine(config, inline_renderers={"citation": lambda n: "(cite)"}) as engine:
            assert engine.serialize_document(doc) == "See (cite)"
            assert "citation" in engine.inline_renderers


# =========================================================================
# Edits and draining
# =========================================================================


class TestChangeSync:
    def test_typing_updates_block(self, loaded, scheduler):
        loaded.on_document_mutated(HELLO_WORLD.replace(1, paragraph("World!")))
        scheduler.advance(loaded.config.debounce_seconds)
        changes = loaded.drain_change_set()
        assert [(u.id, u.text_content, u.markdown_fragment) for u in changes.updates] == [
            ("a2", "World!", "World!")
        ]
        assert loaded.position_of("a2") == 7

    def test_enter_between_blocks(self, loaded, scheduler):
        # Sizes: Hello 7, empty paragraph 2, World 7.
        loaded.on_document_mutated(HELLO_WORLD.insert(1, paragraph()))
        scheduler.advance(1)
        assert loaded.block_ids() == {0: "a1", 7: "temp-1", 9: "a2"}

        changes = loaded.drain_change_set()
        assert changes.updates == []
        assert changes.deletes == []
        assert [(i.temp_id, i.after_block_id, i.block_type) for i in changes.inserts] == [
            ("temp-1", "a1", "paragraph")
        ]

    def test_burst_keeps_transient_insert(self, loaded, scheduler):
        with_blank = HELLO_WORLD.insert(1, paragraph())
        loaded.on_document_mutated(with_blank)
        loaded.on_document_mutated(with_blank.replace(2, paragraph("World!")))
        scheduler.advance(1)

        changes = loaded.drain_change_set()
        assert [(u.id, u.text_content) for u in changes.updates] == [("a2", "World!")]
        assert [(i.temp_id, i.after_block_id) for i in changes.inserts] == [("temp-1", "a1")]
        assert changes.deletes == []

    def test_enter_with_positional_matching(self, config, scheduler):
        with BlockSyncEngine(config, content_matching=False) as engine:
            engine.assign_ids_for_flat_list(["a1", "a2"], HELLO_WORLD)
            engine.on_document_mutated(HELLO_WORLD.insert(1, paragraph()))
            changes = engine.drain_change_set()

        assert [(u.id, u.text_content) for u in changes.updates] == [("a2", "")]
        assert [(i.temp_id, i.after_block_id, i.text_content) for i in changes.inserts] == [
            ("temp-1", "a2", "World")
        ]

    def test_clearing_a_line_updates_that_block_only(self, engine):
        engine.assign_ids_for_flat_list(["a1", "a2"], Document([paragraph("a"), paragraph()]))
        engine.on_document_mutated(Document([paragraph(), paragraph()]))
        assert engine.block_ids() == {0: "a1", 2: "a2"}

        changes = engine.drain_change_set()
        assert [(u.id, u.text_content) for u in changes.updates] == [("a1", "")]
        assert changes.inserts == []
        assert changes.deletes == []

    def test_fast_typing_not_lost(self, loaded):
        for word in ("W", "Wo", "Wor", "Word"):
            loaded.on_document_mutated(HELLO_WORLD.replace(1, paragraph(word)))
        assert loaded.has_pending_changes()
        changes = loaded.drain_change_set()
        assert [u.text_content for u in changes.updates] == ["Word"]
        assert not loaded.has_pending_changes()

    def test_delete_block(self, loaded):
        loaded.on_document_mutated(HELLO_WORLD.remove(0))
        changes = loaded.drain_change_set()
        assert changes.deletes == ["a1"]
        assert loaded.block_ids() == {0: "a2"}

    def test_flush(self, loaded):
        assert loaded.flush() is False
        loaded.on_document_mutated(HELLO_WORLD.replace(0, paragraph("Hi")))
        assert loaded.flush() is True
        assert len(loaded.drain_change_set().updates) == 1

    def test_tick_with_external_clock(self, config):
        now = [0.0]
        with BlockSyncEngine(config, scheduler=ManualScheduler(lambda: now[0])) as engine:
            engine.assign_ids_for_flat_list(["a1", "a2"], HELLO_WORLD)
            engine.on_document_mutated(HELLO_WORLD.replace(0, paragraph("Hi")))
            assert engine.tick() == 0
            now[0] = 1.0
            assert engine.tick() == 1
            assert engine.has_pending_changes()

    def test_debug_dump(self, config, capsys):
        with BlockSyncEngine(config, debug_dump_changes=True) as engine:
            engine.assign_ids_for_flat_list(["a1", "a2"], HELLO_WORLD)
            engine.on_document_mutated(HELLO_WORLD.insert(1, paragraph()))
            engine.drain_change_set()
        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["inserts"][0]["tempId"] == "temp-1"
        assert payload["inserts"][0]["afterBlockId"] == "a1"


# =========================================================================
# Confirmations
# =========================================================================


class TestConfirmations:
    def _insert_block(self, engine):
        engine.on_document_mutated(HELLO_WORLD.insert(1, paragraph()))
        return engine.drain_change_set().inserts[0].temp_id

    def test_confirm_ids_rekeys_everything(self, loaded):
        temp_id = self._insert_block(loaded)
        assert loaded.confirm_ids({temp_id: "b9"}) == {temp_id: "b9"}
        assert loaded.block_id_at(7) == "b9"
        assert "b9" in loaded.baseline

        loaded.on_document_mutated(HELLO_WORLD.insert(1, paragraph("X")))
        changes = loaded.drain_change_set()
        assert [(u.id, u.text_content) for u in changes.updates] == [("b9", "X")]
        assert changes.inserts == []
        assert changes.deletes == []

    def test_confirm_ids_is_idempotent(self, loaded):
        temp_id = self._insert_block(loaded)
        loaded.confirm_ids({temp_id: "b9"})
        assert loaded.confirm_ids({temp_id: "b9"}) == {}
        assert loaded.block_ids() == {0: "a1", 7: "b9", 9: "a2"}

    def test_stale_confirmation_dropped(self, loaded):
        assert loaded.confirm_ids({"temp-404": "b1"}) == {}
        assert loaded.block_ids() == {0: "a1", 7: "a2"}
        assert loaded.apply_pending_confirmations_now() == {}

    def test_deferred_confirmation_applied_on_next_pass(self, loaded):
        temp_id = self._insert_block(loaded)
        loaded.confirm(temp_id, "b9")
        assert loaded.block_id_at(7) == temp_id

        loaded.on_document_mutated(HELLO_WORLD.insert(1, paragraph("X")))
        assert loaded.block_id_at(7) == "b9"
        changes = loaded.drain_change_set()
        assert [u.id for u in changes.updates] == ["b9"]
        assert changes.inserts == []

    def test_confirmation_before_drain_drops_insert(self, loaded):
        loaded.on_document_mutated(HELLO_WORLD.insert(1, paragraph()))
        loaded.confirm_ids({"temp-1": "b9"})
        changes = loaded.drain_change_set()
        assert changes.is_empty()

    def test_rekey_snapshot(self, loaded):
        temp_id = self._insert_block(loaded)
        loaded.rekey_snapshot({temp_id: "b9"})
        assert loaded.position_of("b9") == 7
        assert list(loaded.baseline) == ["a1", "b9", "a2"]


# =========================================================================
# Bulk replacement and loading
# =========================================================================


class TestBulkReplacement:
    def test_pause_suppresses_changes(self, loaded):
        loaded.set_sync_paused(True)
        assert loaded.sync_paused
        replacement = Document([paragraph("Brand"), paragraph("New")])
        loaded.on_document_mutated(replacement)
        assert not loaded.has_pending_changes()

        loaded.reset_and_snapshot(replacement)
        loaded.set_sync_paused(False)
        assert loaded.drain_change_set().is_empty()
        assert [r.text_content for r in loaded.baseline.values()] == ["Brand", "New"]

    def test_flat_list_duplicates_rejected(self, engine):
        with pytest.raises(BlockSyncValidationError):
            engine.assign_ids_for_flat_list(["a", "a"], HELLO_WORLD)

    def test_flat_list_surplus_blocks_pending_insert(self, engine):
        engine.assign_ids_for_flat_list(["a1"], HELLO_WORLD)
        inserts = engine.drain_change_set().inserts
        assert [(i.temp_id, i.after_block_id) for i in inserts] == [("temp-1", "a1")]

    def test_load_markdown(self, engine):
        doc = engine.load_markdown("# Title\n\nHello")
        assert [n.type_name for n in doc.children] == ["heading", "paragraph"]
        assert engine.block_ids() == {0: "temp-1", 7: "temp-2"}
        assert engine.baseline["temp-1"].heading_level == 1
        assert engine.drain_change_set().is_empty()

    def test_load_markdown_keeps_aligned_ids(self, loaded):
        loaded.load_markdown("Hello\n\nWorld!")
        assert loaded.block_ids() == {0: "a1", 7: "a2"}
        assert loaded.drain_change_set().is_empty()

    def test_load_markdown_with_block_ids(self, loaded):
        loaded.load_markdown("Other\n\nText\n\nMore", block_ids=["b1", "b2"])
        assert loaded.block_ids() == {0: "b1", 7: "b2", 13: "temp-1"}
        assert loaded.position_of("a1") is None
        assert loaded.drain_change_set().is_empty()

    def test_load_markdown_with_block_ids_ignores_old_map(self, loaded):
        # Same shape as the loaded document, but the host says these are new blocks.
        loaded.load_markdown("Hello\n\nWorld", block_ids=["b1", "b2"])
        assert loaded.block_ids() == {0: "b1", 7: "b2"}

        loaded.on_document_mutated(HELLO_WORLD.replace(1, paragraph("World!")))
        assert [u.id for u in loaded.drain_change_set().updates] == ["b2"]

    def test_load_blank_markdown_clears_ids(self, loaded):
        loaded.load_markdown("  \n", block_ids=["b1"])
        assert loaded.block_ids() == {}
        assert len(loaded.baseline) == 0

    def test_load_markdown_duplicate_ids_rejected(self, loaded):
        with pytest.raises(BlockSyncValidationError):
            loaded.load_markdown("a\n\nb", block_ids=["x", "x"])
        assert loaded.block_ids() == {0: "a1", 7: "a2"}

    def test_reset_for_project_switch(self, loaded):
        loaded.on_document_mutated(HELLO_WORLD.insert(1, paragraph()))
        loaded.confirm("temp-1", "b9")
        loaded.reset_for_project_switch()

        assert not loaded.closed
        assert loaded.block_ids() == {}
        assert len(loaded.baseline) == 0
        assert not loaded.has_pending_changes()
        assert loaded.apply_pending_confirmations_now() == {}

        loaded.load_markdown("Hello\n\nWorld")
        assert loaded.block_ids() == {0: "temp-2", 7: "temp-3"}
        assert loaded.drain_change_set().is_empty()

    def test_load_blocks(self, engine):
        doc = engine.load_blocks([
            StoredBlock("b2", "World", sort_order=2),
            StoredBlock("b1", "**Hello**", sort_order=1),
        ])
        assert engine.block_ids() == {0: "b1", 7: "b2"}
        assert engine.serialize_document() == "**Hello**\n\nWorld"
        assert engine.serialize_document(doc) == "**Hello**\n\nWorld"
        assert engine.drain_change_set().is_empty()

    def test_clear_block_ids(self, loaded):
        loaded.clear_block_ids()
        assert loaded.block_ids() == {}
        loaded.on_document_mutated(HELLO_WORLD)
        changes = loaded.drain_change_set()
        assert sorted(changes.deletes) == ["a1", "a2"]
        assert [i.temp_id for i in changes.inserts] == ["temp-1", "temp-2"]


# =========================================================================
# Lookups
# =========================================================================


class TestLookups:
    def test_block_at(self, loaded):
        assert loaded.block_at(3) == BlockLocation("a1", 2)
        assert loaded.block_at(8) == BlockLocation("a2", 0)
        assert loaded.block_at(100) is None

    def test_block_at_without_tree(self, engine):
        assert engine.block_at(0) is None
        assert engine.serialize_document() == ""

    def test_block_at_explicit_tree(self, loaded):
        grown = HELLO_WORLD.replace(0, paragraph("Hello there"))
        assert loaded.block_at(5, grown) == BlockLocation("a1", 4)


# =========================================================================
# Degradation
# =========================================================================


class TestMalformedBlocks:
    def test_failing_block_skipped_not_deleted(self, config, metrics):
        state = {"fail": False}

        def flaky(node):
            if state["fail"]:
                raise RuntimeError("boom")
            return "[@smith]"

        doc = Document([paragraph("See ", citation("smith")), paragraph("World")])
        with BlockSyncEngine(config, inline_renderers={"citation": flaky}) as engine:
            engine.assign_ids_for_flat_list(["c1", "w1"], doc)
            state["fail"] = True
            engine.on_document_mutated(doc.replace(1, paragraph("World!")))
            changes = engine.drain_change_set()

        assert [u.id for u in changes.updates] == ["w1"]
        assert changes.deletes == []
        assert metrics.total("blocksync.blocks_skipped_total") == 1


# =========================================================================
# Teardown
# =========================================================================


class TestTeardown:
    def test_close_releases_state(self, config, scheduler):
        engine = BlockSyncEngine(config)
        engine.assign_ids_for_flat_list(["a1", "a2"], HELLO_WORLD)
        engine.on_document_mutated(HELLO_WORLD.replace(0, paragraph("Hi")))
        engine.confirm("a1", "x")
        engine.close()

        assert engine.closed
        assert scheduler.pending == 0
        assert engine.block_ids() == {}
        assert len(engine.baseline) == 0

    def test_calls_after_close_are_ignored(self, config):
        with BlockSyncEngine(config) as engine:
            pass
        engine.on_document_mutated(HELLO_WORLD)
        engine.assign_ids_for_flat_list(["a1"], HELLO_WORLD)
        assert engine.confirm_ids({"temp-1": "x"}) == {}
        assert engine.drain_change_set().is_empty()
        assert engine.block_ids() == {}
        engine.close()
