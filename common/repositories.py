"""
Repository layer for the NFT indexer.

Each repository class accepts an optional Database instance,
defaulting to the module-level singleton when not provided.
Thread-safe: each method opens its own connection via db.get_connection(),
unless a caller-owned connection is passed in to share a transaction.
"""

from typing import List, Optional, Set, Tuple

from common.database import db as _default_db
from common.models import (
    Nft,
    NftCreate,
    Collection,
    CollectionCreate,
    attributes_to_json,
)

_NFT_COLUMNS = "id, name, type, rarity, image_url, attributes, created_at, updated_at"
_COLLECTION_COLUMNS = "type, name, description, total_supply, created_at, updated_at"


class NftRepository:
    """Storage for normalized NFT rows: insert-or-ignore writes, bulk rarity updates."""

    def __init__(self, database=None):
        self._db = database or _default_db

    # ---- reads ----

    def get_by_id(self, nft_id: str) -> Optional[Nft]:
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_NFT_COLUMNS} FROM nfts WHERE id = ?", (nft_id,))
            row = cursor.fetchone()
            if not row:
                return None
            return Nft.from_row(row)
        finally:
            conn.close()

    def get_by_type(self, nft_type: str) -> List[Nft]:
        """All NFTs of a collection in storage (first-insert) order."""
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_NFT_COLUMNS} FROM nfts WHERE type = ? ORDER BY rowid",
                (nft_type,),
            )
            return [Nft.from_row(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_ranked(self, nft_type: str, limit: int = 100, offset: int = 0) -> List[Nft]:
        """NFTs of a collection ordered by rarity rank, unranked rows last."""
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"""
                SELECT {_NFT_COLUMNS} FROM nfts
                WHERE type = ?
                ORDER BY rarity IS NULL, rarity, rowid
                LIMIT ? OFFSET ?
            """, (nft_type, limit, offset))
            return [Nft.from_row(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_count(self, nft_type: Optional[str] = None) -> int:
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            if nft_type is None:
                cursor.execute("SELECT COUNT(*) FROM nfts")
            else:
                cursor.execute("SELECT COUNT(*) FROM nfts WHERE type = ?", (nft_type,))
            return cursor.fetchone()[0]
        finally:
            conn.close()

    # ---- writes ----

    def insert_batch(self, nfts: List[NftCreate], conn=None) -> None:
        """Insert many NFTs in one transaction. Existing ids are left untouched."""
        owns_conn = conn is None
        if owns_conn:
            conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.executemany("""
                INSERT OR IGNORE INTO nfts
                (id, name, type, image_url, attributes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
            """, [
                (nft.id, nft.name, nft.type, nft.image_url, attributes_to_json(nft.attributes))
                for nft in nfts
            ])
            if owns_conn:
                conn.commit()
        except Exception:
            if owns_conn:
                conn.rollback()
            raise
        finally:
            if owns_conn:
                conn.close()

    def update_rarity_batch(self, updates: List[Tuple[str, int]]) -> None:
        """Sets rarity ranks in a single transaction.

        Args:
            updates: list of (nft_id, rank) tuples
        """
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.executemany("""
                UPDATE nfts
                SET rarity = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            """, [(rank, nft_id) for nft_id, rank in updates])
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete_by_type(self, nft_type: str, conn=None) -> int:
        """Deletes every NFT of a collection. Returns the number of rows removed."""
        owns_conn = conn is None
        if owns_conn:
            conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM nfts WHERE type = ?", (nft_type,))
            deleted = cursor.rowcount
            if owns_conn:
                conn.commit()
            return deleted
        except Exception:
            if owns_conn:
                conn.rollback()
            raise
        finally:
            if owns_conn:
                conn.close()


class CollectionRepository:
    """Storage for finished collections."""

    def __init__(self, database=None):
        self._db = database or _default_db

    def get_all(self) -> List[Collection]:
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLLECTION_COLUMNS} FROM collections ORDER BY created_at, type")
            return [Collection.from_row(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get_types(self) -> Set[str]:
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT type FROM collections")
            return {row[0] for row in cursor.fetchall()}
        finally:
            conn.close()

    def get_by_type(self, collection_type: str) -> Optional[Collection]:
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_COLLECTION_COLUMNS} FROM collections WHERE type = ?",
                (collection_type,),
            )
            row = cursor.fetchone()
            if not row:
                return None
            return Collection.from_row(row)
        finally:
            conn.close()

    def get_count(self) -> int:
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM collections")
            return cursor.fetchone()[0]
        finally:
            conn.close()

    def insert(self, collection: CollectionCreate) -> None:
        """Inserts a collection once; a second insert for the same type is ignored."""
        conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR IGNORE INTO collections
                (type, name, description, total_supply, created_at, updated_at)
                VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
            """, (
                collection.type,
                collection.name,
                collection.description,
                collection.total_supply,
            ))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def delete(self, collection_type: str, conn=None) -> int:
        owns_conn = conn is None
        if owns_conn:
            conn = self._db.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM collections WHERE type = ?", (collection_type,))
            deleted = cursor.rowcount
            if owns_conn:
                conn.commit()
            return deleted
        except Exception:
            if owns_conn:
                conn.rollback()
            raise
        finally:
            if owns_conn:
                conn.close()
