#!/usr/bin/env python3
"""
Run Indexer Script

Starts the poll loop: resumes the active collection from the checkpoint,
then works through the queue until it is empty.

All parameters read from config.json under "upstream", "scheduler" and
"paths" sections.

Input:
    - Checkpoint JSON (queue, active collection, cursor)
    - Upstream GraphQL endpoint

Output:
    - NFTs and collections in SQLite
    - Updated checkpoint

Usage:
    python scripts/run_indexer.py
    python scripts/run_indexer.py --enqueue 0x..::nft::Nft 0x..::other::Nft
    python scripts/run_indexer.py --serve
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.logging.logger import setup_logger, get_logger
from common.config import config

logger = get_logger("run_indexer")


def main():
    parser = argparse.ArgumentParser(
        description="Run Indexer - page through queued NFT collections"
    )
    parser.add_argument(
        "--enqueue",
        nargs="*",
        default=[],
        metavar="TYPE",
        help="Collection types to append to the queue before starting"
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=config.get("upstream.page_size"),
        help=f"Records per page (default: {config.get('upstream.page_size')})"
    )
    parser.add_argument(
        "--tick-delay",
        type=float,
        default=config.get("scheduler.tick_delay_seconds"),
        help="Seconds between ticks"
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Also serve the read/delete API while indexing"
    )

    args = parser.parse_args()

    # Setup logging
    setup_logger("run_indexer", console_output=True)
    config.validate()

    logger.info("=" * 60)
    logger.info("NFT INDEXER")
    logger.info("=" * 60)
    logger.info(f"Endpoint: {config.get('upstream.graphql_endpoint')}")
    logger.info(f"Checkpoint: {config.get('paths.checkpoint_path')}")
    logger.info(f"Database: {config.get('database.sqlite_path')}")
    logger.info("=" * 60)

    from indexer.scheduler import PollLoop, build_scheduler

    server = None
    server_thread = None
    if args.serve:
        from api.server import IndexerServer
        server = IndexerServer(host=config.get("server.host"), port=config.get("server.port"))
        server_thread = server.start_background()
        logger.info(f"API listening on http://{server.host}:{server.port}")

    scheduler = build_scheduler(page_size=args.page_size)
    if args.enqueue:
        scheduler.store.enqueue(args.enqueue)

    ticks = PollLoop(scheduler, delay=args.tick_delay).run()
    logger.info(f"Poll loop finished after {ticks} ticks")

    if server is not None:
        # Keep serving reads after indexing is done
        logger.info("Indexing idle; API still serving. Press Ctrl+C to stop.")
        try:
            server_thread.join()
        except KeyboardInterrupt:
            server.shutdown()


if __name__ == "__main__":
    main()
