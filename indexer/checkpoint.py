"""
Checkpoint store for the indexing poll loop.

The checkpoint is a small JSON document holding the pending queue, the
collection currently being paginated and the last continuation cursor:

    {
      "to_index": ["0x..::nft::Nft", ...],
      "currently_indexing": "0x..::other::Nft",
      "last_cursor": "eyJjIjo..."
    }

It is rewritten in full after every processed page, so writes go through a
temp file + os.replace to never leave a truncated file behind.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from common.config import config
from common.errors import PersistenceError
from common.logging.logger import get_logger

logger = get_logger("checkpoint")


@dataclass(frozen=True)
class Checkpoint:
    """Immutable snapshot of the indexing state."""
    to_index: List[str] = field(default_factory=list)
    currently_indexing: Optional[str] = None
    last_cursor: Optional[str] = None

    @classmethod
    def empty(cls) -> "Checkpoint":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        queue = data.get("to_index") or []
        if not isinstance(queue, list):
            raise ValueError(f"to_index must be a list, got {type(queue).__name__}")
        # Older checkpoints wrote "" for "nothing active"
        active = data.get("currently_indexing") or None
        cursor = data.get("last_cursor") or None
        return cls(
            to_index=[str(t) for t in queue if t],
            currently_indexing=active,
            last_cursor=cursor,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "to_index": list(self.to_index),
            "currently_indexing": self.currently_indexing,
            "last_cursor": self.last_cursor,
        }

    def with_cursor(self, cursor: Optional[str]) -> "Checkpoint":
        return replace(self, last_cursor=cursor)

    def cleared(self) -> "Checkpoint":
        """Drops the active collection and its cursor."""
        return replace(self, currently_indexing=None, last_cursor=None)

    def advanced(self) -> "Checkpoint":
        """Moves the head of the queue into currently_indexing, starting from the first page."""
        if not self.to_index:
            return self
        head, *rest = self.to_index
        return Checkpoint(to_index=rest, currently_indexing=head, last_cursor=None)


def cleanup(checkpoint: Checkpoint, indexed_types: Set[str]) -> Checkpoint:
    """
    Restores the queue invariants.

    - duplicates are removed, first occurrence wins
    - the active collection is never also queued
    - collections already present in storage are never queued again
    """
    seen = set()
    queue = []
    for collection_type in checkpoint.to_index:
        if collection_type in seen:
            continue
        seen.add(collection_type)
        if collection_type == checkpoint.currently_indexing:
            continue
        if collection_type in indexed_types:
            continue
        queue.append(collection_type)
    return replace(checkpoint, to_index=queue)


class CheckpointStore:
    """
    Loads and saves the Checkpoint as a JSON file.

    Args:
        path: Checkpoint file (defaults to config "paths.checkpoint_path").
        indexed_types: Callable returning the set of collection types already
            stored; consulted by the cleanup pass on every load.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        indexed_types: Optional[Callable[[], Set[str]]] = None,
    ):
        self.path = Path(path or config.get("paths.checkpoint_path"))
        self._indexed_types = indexed_types or (lambda: set())

    def load(self) -> Checkpoint:
        """Returns the cleaned-up checkpoint, or an empty one if none was saved yet."""
        checkpoint = self._read()
        try:
            indexed = self._indexed_types()
        except Exception as e:
            raise PersistenceError("collections", f"could not list indexed collections: {e}") from e
        cleaned = cleanup(checkpoint, indexed)
        dropped = len(checkpoint.to_index) - len(cleaned.to_index)
        if dropped:
            logger.info(f"Checkpoint cleanup dropped {dropped} queued entries")
        return cleaned

    def _read(self) -> Checkpoint:
        if not self.path.exists():
            return Checkpoint.empty()
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("checkpoint root must be an object")
            return Checkpoint.from_dict(data)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read checkpoint {self.path}: {e}")
            raise PersistenceError("checkpoint", str(e)) from e

    def save(self, checkpoint: Checkpoint, raise_errors: bool = False) -> bool:
        """
        Overwrites the checkpoint file with *checkpoint*.

        Returns True on success. Failures are logged; they only raise
        PersistenceError when raise_errors is set.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(checkpoint.to_dict(), f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error(f"Error storing checkpoint to {self.path}: {e}")
            if raise_errors:
                raise PersistenceError("checkpoint", str(e)) from e
            return False
        return True

    def enqueue(self, collection_types: Iterable[str]) -> Checkpoint:
        """Appends collection types to the queue and saves. Returns the new checkpoint."""
        checkpoint = self.load()
        queue = list(checkpoint.to_index) + [t.strip() for t in collection_types if t and t.strip()]
        updated = cleanup(replace(checkpoint, to_index=queue), self._indexed_types())
        self.save(updated, raise_errors=True)
        logger.info(f"Queue now holds {len(updated.to_index)} collections")
        return updated
