"""Tests for indexer/checkpoint.py: cleanup invariants and JSON persistence."""

import json

import pytest

from common.errors import PersistenceError
from common.models import CollectionCreate
from indexer.checkpoint import Checkpoint, CheckpointStore, cleanup


class TestCleanup:
    def test_drops_already_indexed_collection(self):
        checkpoint = Checkpoint.from_dict(
            {"to_index": ["A", "B"], "currently_indexing": "", "last_cursor": None}
        )
        assert cleanup(checkpoint, {"A"}).to_index == ["B"]

    def test_dedupes_keeping_first_occurrence(self):
        checkpoint = Checkpoint(to_index=["B", "A", "B", "C", "A"])
        assert cleanup(checkpoint, set()).to_index == ["B", "A", "C"]

    def test_drops_active_collection_from_queue(self):
        checkpoint = Checkpoint(to_index=["A", "B"], currently_indexing="A", last_cursor="c1")
        cleaned = cleanup(checkpoint, set())
        assert cleaned.to_index == ["B"]
        assert cleaned.currently_indexing == "A"
        assert cleaned.last_cursor == "c1"

    def test_does_not_mutate_input(self):
        checkpoint = Checkpoint(to_index=["A", "A"])
        cleanup(checkpoint, {"A"})
        assert checkpoint.to_index == ["A", "A"]


class TestCheckpointTransitions:
    def test_advanced_pops_head_and_resets_cursor(self):
        checkpoint = Checkpoint(to_index=["A", "B"], last_cursor="stale")
        advanced = checkpoint.advanced()
        assert advanced.currently_indexing == "A"
        assert advanced.to_index == ["B"]
        assert advanced.last_cursor is None

    def test_advanced_on_empty_queue_is_noop(self):
        assert Checkpoint.empty().advanced() == Checkpoint.empty()

    def test_cleared(self):
        checkpoint = Checkpoint(to_index=["B"], currently_indexing="A", last_cursor="c")
        assert checkpoint.cleared() == Checkpoint(to_index=["B"])

    def test_empty_string_active_reads_as_none(self):
        checkpoint = Checkpoint.from_dict({"to_index": [], "currently_indexing": "", "last_cursor": ""})
        assert checkpoint.currently_indexing is None
        assert checkpoint.last_cursor is None


class TestCheckpointStore:
    def test_load_missing_file_returns_empty(self, checkpoint_store):
        assert checkpoint_store.load() == Checkpoint.empty()

    def test_save_and_load(self, checkpoint_store):
        checkpoint = Checkpoint(to_index=["B"], currently_indexing="A", last_cursor="cursor-1")
        assert checkpoint_store.save(checkpoint) is True
        assert checkpoint_store.load() == checkpoint

    def test_file_format(self, checkpoint_store, checkpoint_path):
        checkpoint_store.save(Checkpoint(to_index=["B"], currently_indexing="A"))
        with open(checkpoint_path) as f:
            data = json.load(f)
        assert data == {"to_index": ["B"], "currently_indexing": "A", "last_cursor": None}

    def test_load_runs_cleanup_against_collections(self, checkpoint_store, collection_repo):
        collection_repo.insert(CollectionCreate(type="A", name="A", description="d", total_supply=1))
        checkpoint_store.save(Checkpoint(to_index=["A", "B", "B"]))
        assert checkpoint_store.load().to_index == ["B"]

    def test_corrupt_file_raises_persistence_error(self, checkpoint_store, checkpoint_path):
        with open(checkpoint_path, "w") as f:
            f.write("{not json")
        with pytest.raises(PersistenceError):
            checkpoint_store.load()

    def test_save_failure_is_logged_not_raised(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = CheckpointStore(str(blocker / "index_data.json"))
        assert store.save(Checkpoint(to_index=["A"])) is False
        with pytest.raises(PersistenceError):
            store.save(Checkpoint(to_index=["A"]), raise_errors=True)

    def test_save_leaves_no_temp_files(self, checkpoint_store, tmp_path):
        for i in range(3):
            checkpoint_store.save(Checkpoint(currently_indexing="A", last_cursor=str(i)))
        assert sorted(p.name for p in tmp_path.iterdir() if p.name.startswith(".index_data")) == []

    def test_enqueue_appends_and_dedupes(self, checkpoint_store):
        checkpoint_store.save(Checkpoint(to_index=["B"], currently_indexing="A"))
        updated = checkpoint_store.enqueue(["A", "C", "B", " ", "C"])
        assert updated.to_index == ["B", "C"]
        assert checkpoint_store.load().to_index == ["B", "C"]
