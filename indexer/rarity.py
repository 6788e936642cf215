"""
Rarity ranking from trait frequencies.

score(nft) = sum over its traits of 1 / (count(key, value) / N)

where N is the collection size and count is the number of times the exact
(key, value) pair occurs across the collection. NFTs without traits get
ATTRIBUTELESS_SCORE, which is below every achievable score, so they rank
last. Ranks are 1..N by descending score; equal scores keep storage order.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from common.config import config
from common.logging.logger import get_logger
from common.models import Attribute, Nft
from common.repositories import NftRepository

logger = get_logger("rarity")

# Any NFT with at least one trait scores > 0.
ATTRIBUTELESS_SCORE = 0.0


@dataclass
class RankedNft:
    id: str
    rank: int
    score: float
    attribute_count: int


def _valid(attr: Attribute) -> bool:
    return bool(attr.key and attr.key.strip() and attr.value and attr.value.strip())


def trait_counts(attribute_sets: Sequence[Sequence[Attribute]]) -> Counter:
    """Occurrences of each (key, value) pair over all valid attributes."""
    counts: Counter = Counter()
    for attributes in attribute_sets:
        for attr in attributes:
            if _valid(attr):
                counts[(attr.key, attr.value)] += 1
    return counts


def compute_scores(attribute_sets: Sequence[Sequence[Attribute]]) -> np.ndarray:
    """Raw inverse-frequency score per NFT, in input order."""
    total = len(attribute_sets)
    counts = trait_counts(attribute_sets)
    scores = np.full(total, ATTRIBUTELESS_SCORE, dtype=np.float64)
    for i, attributes in enumerate(attribute_sets):
        valid = [attr for attr in attributes if _valid(attr)]
        if not valid:
            continue
        scores[i] = sum(total / counts[(attr.key, attr.value)] for attr in valid)
    return scores


def rank_order(scores: np.ndarray) -> np.ndarray:
    """Indices sorted by descending score; ties keep their input order."""
    return np.argsort(-scores, kind="stable")


def rank_nfts(nfts: Sequence[Nft]) -> List[RankedNft]:
    """Ranks NFTs (given in storage order). Pure: does not touch the database."""
    if not nfts:
        return []
    attribute_sets = [nft.attributes for nft in nfts]
    scores = compute_scores(attribute_sets)
    ranked = []
    for position, index in enumerate(rank_order(scores)):
        nft = nfts[int(index)]
        ranked.append(RankedNft(
            id=nft.id,
            rank=position + 1,
            score=float(scores[index]),
            attribute_count=sum(1 for a in nft.attributes if _valid(a)),
        ))
    return ranked


class RarityEngine:
    """Recomputes and stores rarity ranks for a whole collection."""

    def __init__(self, nft_repo: Optional[NftRepository] = None, top_n_log: Optional[int] = None):
        self.nft_repo = nft_repo or NftRepository()
        self.top_n_log = top_n_log if top_n_log is not None else config.get("rarity.top_n_log")

    def update_collection(self, collection_type: str) -> List[RankedNft]:
        """
        Ranks every stored NFT of *collection_type* and writes the ranks in one
        transaction. Returns the ranking (empty when nothing was written).
        """
        logger.info(f"Starting rarity score calculation for {collection_type}")
        nfts = self.nft_repo.get_by_type(collection_type)
        if not nfts:
            logger.warning(f"No NFTs stored for {collection_type}, nothing to rank")
            return []

        if not any(_valid(a) for nft in nfts for a in nft.attributes):
            logger.warning(f"No NFTs with attributes in {collection_type}, nothing to rank")
            return []

        ranked = rank_nfts(nfts)
        self.nft_repo.update_rarity_batch([(r.id, r.rank) for r in ranked])
        logger.info(f"Rarity scores saved for {len(ranked)} NFTs")

        for r in ranked[:self.top_n_log]:
            logger.info(f"Rank {r.rank}: {r.id} ({r.attribute_count} attrs, raw {r.score:.2f})")
        return ranked


def scores_by_id(nfts: Sequence[Nft]) -> Dict[str, float]:
    """Raw score per NFT id."""
    scores = compute_scores([nft.attributes for nft in nfts])
    return {nft.id: float(score) for nft, score in zip(nfts, scores)}
