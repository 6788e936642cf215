"""Tests for indexer/finalizer.py."""

import pytest

from common.errors import FinalizationError
from indexer.finalizer import CollectionFinalizer, parse_collection_name

from factories import FakePageSource, make_node

TYPE = "0xabc::nft::Nft"


@pytest.mark.parametrize("raw, expected", [
    ("Prime Machin #1234", "Prime Machin"),
    ("Suimilios 42", "Suimilios"),
    ("Doonies#7", "Doonies"),
    ("Plain Name", "Plain Name"),
    ("  Padded #1 ", "Padded #1"),
    ("", ""),
    (None, ""),
])
def test_parse_collection_name(raw, expected):
    assert parse_collection_name(raw) == expected


class TestCollectionFinalizer:
    def test_persists_collection_with_run_total(self, collection_repo):
        source = FakePageSource({TYPE: [make_node("0x1", name="Ape #17", description=" Apes on Sui ")]})
        finalizer = CollectionFinalizer(source, collection_repo)
        assert finalizer.finalize(TYPE, total_supply=120) is True

        stored = collection_repo.get_by_type(TYPE)
        assert stored.name == "Ape"
        assert stored.description == "Apes on Sui"
        assert stored.total_supply == 120
        assert source.calls == [(TYPE, 1, None)]

    def test_display_description_preferred(self, collection_repo):
        node = make_node("0x1", name="Ape #1", description="json description")
        node["asMoveObject"]["contents"]["display"] = {"output": {"description": "display description"}}
        CollectionFinalizer(FakePageSource({TYPE: [node]}), collection_repo).finalize(TYPE, 1)
        assert collection_repo.get_by_type(TYPE).description == "display description"

    def test_blank_description_skips_persistence(self, collection_repo):
        source = FakePageSource({TYPE: [make_node("0x1", name="Ape #1", description="   ")]})
        assert CollectionFinalizer(source, collection_repo).finalize(TYPE, 5) is False
        assert collection_repo.get_by_type(TYPE) is None

    def test_name_that_is_only_a_number_is_blank(self, collection_repo):
        source = FakePageSource({TYPE: [make_node("0x1", name="#123", description="d")]})
        with pytest.raises(FinalizationError):
            CollectionFinalizer(source, collection_repo).resolve_metadata(TYPE)

    def test_no_sample_is_non_fatal(self, collection_repo):
        assert CollectionFinalizer(FakePageSource(), collection_repo).finalize(TYPE, 0) is False

    def test_fetch_error_is_non_fatal(self, collection_repo):
        source = FakePageSource({TYPE: [make_node("0x1", description="d")]})
        source.raise_next = 1
        assert CollectionFinalizer(source, collection_repo).finalize(TYPE, 1) is False
        assert collection_repo.get_count() == 0
