import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional
from common.config import config
from common.logging.logger import get_logger

logger = get_logger("database")

class Database:
    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            # Convert to absolute path to avoid issues with relative paths in threads
            raw_path = config.get("database.sqlite_path")
            self.db_path = os.path.abspath(raw_path)
        elif db_path == ":memory:":
            self.db_path = ":memory:"
        else:
            self.db_path = os.path.abspath(db_path)
        self._init_db()

    def get_connection(self):
        return sqlite3.connect(self.db_path)

    @contextmanager
    def connection(self):
        """Context manager that provides a connection with automatic commit/rollback."""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize the database schema."""
        schema = """
        -- Indexed NFTs, one row per on-chain object
        CREATE TABLE IF NOT EXISTS nfts (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            type TEXT NOT NULL,
            rarity INTEGER,
            image_url TEXT NOT NULL,
            attributes JSON NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_nfts_type ON nfts(type);

        -- Fully indexed collections
        CREATE TABLE IF NOT EXISTS collections (
            type TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL,
            total_supply INTEGER NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        """

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            with self.get_connection() as conn:
                conn.executescript(schema)
            logger.info(f"Database initialized at {self.db_path}")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

db = Database()
