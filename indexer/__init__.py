"""
Resumable NFT collection indexer.

Pages through every NFT of a queued collection type, normalizes the raw
objects, stores them, ranks them by trait rarity and records the collection.

Components:
    - checkpoint: JSON checkpoint store (queue, active collection, cursor)
    - source: GraphQL page source
    - normalizer: raw object -> NftCreate
    - rarity: trait-frequency ranking
    - finalizer: collection metadata persistence
    - scheduler: tick state machine and poll loop

Usage:
    python -m indexer.scheduler --enqueue 0x..::nft::Nft
"""

from indexer.checkpoint import Checkpoint, CheckpointStore, cleanup
from indexer.source import PageSource, GraphQLPageSource, Page
from indexer.normalizer import normalize_nft
from indexer.rarity import RarityEngine, rank_nfts
from indexer.finalizer import CollectionFinalizer, parse_collection_name
from indexer.scheduler import Scheduler, SchedulerState, PollLoop, build_scheduler

__all__ = [
    # Checkpoint
    'Checkpoint',
    'CheckpointStore',
    'cleanup',

    # Source
    'PageSource',
    'GraphQLPageSource',
    'Page',

    # Normalizer
    'normalize_nft',

    # Rarity
    'RarityEngine',
    'rank_nfts',

    # Finalizer
    'CollectionFinalizer',
    'parse_collection_name',

    # Scheduler
    'Scheduler',
    'SchedulerState',
    'PollLoop',
    'build_scheduler',
]
