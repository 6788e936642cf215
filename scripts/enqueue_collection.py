#!/usr/bin/env python3
"""
Enqueue Collection Script

Appends collection types to the checkpoint queue. Types that are already
queued, active, or fully indexed are dropped by the checkpoint cleanup.

The poll loop stops once the queue is empty, so run scripts/run_indexer.py
afterwards to pick up the new work.

Usage:
    python scripts/enqueue_collection.py 0x..::nft::Nft
    python scripts/enqueue_collection.py --show
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.logging.logger import setup_logger, get_logger
from common.config import config

logger = get_logger("enqueue")


def main():
    parser = argparse.ArgumentParser(
        description="Enqueue Collection - add collection types to the indexing queue"
    )
    parser.add_argument("types", nargs="*", help="Collection types (Move struct tags)")
    parser.add_argument(
        "--checkpoint",
        default=config.get("paths.checkpoint_path"),
        help="Checkpoint JSON file"
    )
    parser.add_argument("--show", action="store_true", help="Print the checkpoint and exit")

    args = parser.parse_args()

    setup_logger("enqueue", console_output=True)

    from common.repositories import CollectionRepository
    from indexer.checkpoint import CheckpointStore

    store = CheckpointStore(args.checkpoint, indexed_types=CollectionRepository().get_types)

    if args.types and not args.show:
        checkpoint = store.enqueue(args.types)
    else:
        checkpoint = store.load()

    print(json.dumps(checkpoint.to_dict(), indent=2))


if __name__ == "__main__":
    main()
