#!/usr/bin/env python3
"""
Start Server Script

Starts the read/delete API over the indexer database.

All parameters read from config.json under "server" section.

Input:
    - NFTs and collections from SQLite

Output:
    - HTTP API at configured host:port

Usage:
    python scripts/start_server.py
    python scripts/start_server.py --host 0.0.0.0 --port 8080
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.logging.logger import setup_logger, get_logger
from common.config import config

logger = get_logger("api")


def main():
    parser = argparse.ArgumentParser(
        description="Start Server - read/delete API for indexed NFTs"
    )
    parser.add_argument(
        "--host",
        default=config.get("server.host"),
        help=f"Host to bind (default: {config.get('server.host')})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.get("server.port"),
        help=f"Port to listen (default: {config.get('server.port')})"
    )

    args = parser.parse_args()

    setup_logger("api", console_output=True)

    logger.info("=" * 60)
    logger.info("INDEXER API")
    logger.info("=" * 60)
    logger.info(f"Server: http://{args.host}:{args.port}")
    logger.info("=" * 60)

    from api.server import IndexerServer

    server = IndexerServer(host=args.host, port=args.port)
    server.start()


if __name__ == "__main__":
    main()
