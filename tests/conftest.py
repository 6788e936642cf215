"""
Shared pytest fixtures for the indexer tests.

Uses DI to inject temp-file SQLite databases, temp checkpoint files and
in-memory page sources, so no test touches the network or production state.

The conftest patches the Config singleton at import time so that the
module-level `db = Database()` in common/database.py doesn't write to the
configured production path.
"""

import os
import sys
import tempfile
from pathlib import Path

# Ensure project root is on sys.path so imports work from tests/
sys.path.insert(0, str(Path(__file__).parent.parent))

# Patch Config BEFORE anything else imports common.database, so the
# module-level `db = Database()` singleton points at a scratch file.
from common.config import Config

_test_config = Config.__new__(Config)
_test_config._config = {
    "database": {"sqlite_path": os.path.join(tempfile.gettempdir(), "nft_indexer_test_singleton.db")},
    "paths": {"checkpoint_path": os.path.join(tempfile.gettempdir(), "nft_indexer_test_index_data.json")},
}
Config._instance = _test_config

# Now it's safe to import database and repos
import pytest
from common.database import Database
from common.repositories import CollectionRepository, NftRepository
from indexer.checkpoint import CheckpointStore

from factories import FakeClock, FakePageSource, RecordingCheckpointStore


@pytest.fixture
def memory_db(tmp_path):
    """Provides a fresh file-backed SQLite database with full schema.

    Uses tmp_path so each test gets an isolated database (unlike :memory:
    which creates a new DB per connection and loses schema).
    """
    db_file = str(tmp_path / "test_nfts.db")
    return Database(db_path=db_file)


@pytest.fixture
def nft_repo(memory_db):
    return NftRepository(memory_db)


@pytest.fixture
def collection_repo(memory_db):
    return CollectionRepository(memory_db)


@pytest.fixture
def checkpoint_path(tmp_path):
    return str(tmp_path / "index_data.json")


@pytest.fixture
def checkpoint_store(checkpoint_path, collection_repo):
    return CheckpointStore(checkpoint_path, indexed_types=collection_repo.get_types)


@pytest.fixture
def recording_store(checkpoint_path, collection_repo):
    return RecordingCheckpointStore(checkpoint_path, indexed_types=collection_repo.get_types)


@pytest.fixture
def page_source():
    return FakePageSource()


@pytest.fixture
def clock():
    return FakeClock()
