"""
API module for the NFT indexer.

Provides the public HTTP surface over indexed data:
- NFT lookup by on-chain id
- Collection listing and per-collection rarity ordering
- Token-protected collection deletion
"""

from api.server import IndexerServer

__all__ = ['IndexerServer']
