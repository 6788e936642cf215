"""Tests for indexer/rarity.py: scoring, tie-breaks and persistence."""

import random

import pytest

from common.models import Attribute, Nft, NftCreate
from indexer.rarity import ATTRIBUTELESS_SCORE, RarityEngine, compute_scores, rank_nfts, scores_by_id, trait_counts

TYPE = "0xabc::nft::Nft"


def _nft(nft_id, *pairs):
    return Nft(
        id=nft_id, name=nft_id, type=TYPE, rarity=None, image_url="https://img",
        attributes=[Attribute(k, v) for k, v in pairs], created_at=None, updated_at=None,
    )


class TestScores:
    def test_trait_counts(self):
        counts = trait_counts([
            [Attribute("bg", "red"), Attribute("hat", "cap")],
            [Attribute("bg", "red")],
        ])
        assert counts[("bg", "red")] == 2
        assert counts[("hat", "cap")] == 1

    def test_inverse_relative_frequency(self):
        nfts = [_nft("a", ("bg", "red")), _nft("b", ("bg", "red")), _nft("c", ("bg", "blue"))]
        scores = scores_by_id(nfts)
        assert scores["a"] == pytest.approx(3 / 2)
        assert scores["c"] == pytest.approx(3 / 1)

    def test_attributeless_gets_sentinel(self):
        scores = compute_scores([[], [Attribute("bg", "red")]])
        assert scores[0] == ATTRIBUTELESS_SCORE
        assert scores[1] > ATTRIBUTELESS_SCORE


class TestRanking:
    def test_equal_distribution_keeps_retrieval_order(self):
        nfts = [
            _nft("n1", ("bg", "red")),
            _nft("n2", ("bg", "blue")),
            _nft("n3", ("bg", "red")),
            _nft("n4", ("bg", "blue")),
        ]
        ranked = rank_nfts(nfts)
        assert len({r.score for r in ranked}) == 1
        assert [(r.id, r.rank) for r in ranked] == [("n1", 1), ("n2", 2), ("n3", 3), ("n4", 4)]

    def test_rarest_ranks_first(self):
        nfts = [
            _nft("common1", ("bg", "red")),
            _nft("common2", ("bg", "red")),
            _nft("rare", ("bg", "gold")),
        ]
        assert rank_nfts(nfts)[0].id == "rare"

    def test_ranks_are_dense_positions(self):
        nfts = [_nft(f"n{i}", ("bg", str(i % 3))) for i in range(10)]
        assert sorted(r.rank for r in rank_nfts(nfts)) == list(range(1, 11))

    def test_attributeless_always_last(self):
        rng = random.Random(7)
        for _ in range(20):
            nfts = []
            for i in range(rng.randint(2, 15)):
                k = rng.randint(0, 3)
                pairs = [(f"t{j}", str(rng.randint(0, 2))) for j in range(k)]
                nfts.append(_nft(f"n{i}", *pairs))
            if all(nft.attributes for nft in nfts) or not any(nft.attributes for nft in nfts):
                nfts.append(_nft("bare"))
                nfts.append(_nft("rich", ("t0", "9")))
            ranked = rank_nfts(nfts)
            worst_with_attrs = max(r.rank for r in ranked if r.attribute_count > 0)
            best_without = min(r.rank for r in ranked if r.attribute_count == 0)
            assert best_without > worst_with_attrs

    def test_empty(self):
        assert rank_nfts([]) == []


class TestRarityEngine:
    def _store(self, nft_repo, rows):
        nft_repo.insert_batch([
            NftCreate(id=i, name=i, type=TYPE, image_url="https://img",
                      attributes=[Attribute(k, v) for k, v in pairs])
            for i, pairs in rows
        ])

    def test_update_collection_persists_ranks(self, nft_repo):
        self._store(nft_repo, [
            ("0x1", [("bg", "red")]),
            ("0x2", [("bg", "red")]),
            ("0x3", [("bg", "gold")]),
            ("0x4", []),
        ])
        RarityEngine(nft_repo).update_collection(TYPE)
        ranks = {n.id: n.rarity for n in nft_repo.get_by_type(TYPE)}
        assert ranks == {"0x3": 1, "0x1": 2, "0x2": 3, "0x4": 4}

    def test_recompute_from_scratch(self, nft_repo):
        self._store(nft_repo, [("0x1", [("bg", "red")]), ("0x2", [("bg", "blue")])])
        engine = RarityEngine(nft_repo)
        engine.update_collection(TYPE)
        self._store(nft_repo, [("0x3", [("bg", "red")])])
        engine.update_collection(TYPE)
        ranks = {n.id: n.rarity for n in nft_repo.get_by_type(TYPE)}
        assert ranks == {"0x2": 1, "0x1": 2, "0x3": 3}

    def test_collection_without_attributes_is_not_ranked(self, nft_repo):
        self._store(nft_repo, [("0x1", []), ("0x2", [])])
        assert RarityEngine(nft_repo).update_collection(TYPE) == []
        assert all(n.rarity is None for n in nft_repo.get_by_type(TYPE))

    def test_empty_collection(self, nft_repo):
        assert RarityEngine(nft_repo).update_collection(TYPE) == []
