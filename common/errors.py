"""
Exception hierarchy for the NFT indexer.

Everything raised on purpose by the indexer derives from IndexerError so
callers can catch at the granularity they need. Inside a poll tick these
are logged and never terminate the process.
"""


class IndexerError(Exception):
    """Base exception for all indexer errors."""


class ConfigError(IndexerError):
    """Raised when a required configuration key is missing or invalid."""

    def __init__(self, key: str, reason: str = "missing or None"):
        self.key = key
        super().__init__(f"Configuration error for '{key}': {reason}")


class FetchError(IndexerError):
    """Raised when the upstream source is unavailable or returns a malformed page."""

    def __init__(self, source: str, detail: str):
        self.source = source
        super().__init__(f"Fetch error [{source}]: {detail}")


class ParseError(IndexerError):
    """Raised when a raw record or attribute has an unrecognized shape."""

    def __init__(self, detail: str):
        super().__init__(f"Parse error: {detail}")


class PersistenceError(IndexerError):
    """Raised when a checkpoint or storage write/read fails."""

    def __init__(self, backend: str, detail: str):
        self.backend = backend
        super().__init__(f"Persistence error [{backend}]: {detail}")


class FinalizationError(IndexerError):
    """Raised when collection-level metadata cannot be resolved."""

    def __init__(self, collection_type: str, detail: str):
        self.collection_type = collection_type
        super().__init__(f"Finalization of '{collection_type}' failed: {detail}")
