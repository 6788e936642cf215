"""Collection finalizer: persists collection metadata once pagination is done."""

import re
from typing import Optional, Tuple

from common.errors import FetchError, FinalizationError
from common.logging.logger import get_logger
from common.models import CollectionCreate
from common.repositories import CollectionRepository
from indexer.normalizer import resolve_field
from indexer.source import PageSource

logger = get_logger("finalizer")

# "Prime Machin #1234" -> "Prime Machin"
_TRAILING_ENUMERATOR = re.compile(r"\s*#?\d+$")


def parse_collection_name(name: Optional[str]) -> str:
    """Strips a trailing item number from an NFT name."""
    if not name:
        return ""
    return _TRAILING_ENUMERATOR.sub("", name).strip()


class CollectionFinalizer:
    """
    Resolves collection-level name/description from one upstream sample and
    stores the Collection row.

    The sample is fetched from the source rather than from local storage
    because the description is not kept per NFT.
    """

    def __init__(self, source: PageSource, collection_repo: Optional[CollectionRepository] = None):
        self.source = source
        self.collection_repo = collection_repo or CollectionRepository()

    def resolve_metadata(self, collection_type: str) -> Tuple[str, str]:
        """Returns (name, description). Raises FinalizationError when either is missing."""
        logger.info(f"[COLLECTION PARSE] Fetching onchain data for type: {collection_type}")
        try:
            page = self.source.fetch_page(collection_type, first=1, after=None)
        except FetchError as e:
            raise FinalizationError(collection_type, str(e)) from e

        if page is None or not page.nodes:
            raise FinalizationError(collection_type, "no NFT nodes found")

        sample = page.nodes[0]
        name = parse_collection_name(resolve_field(sample, "name"))
        description = (resolve_field(sample, "description") or "").strip()

        if not name or not description:
            raise FinalizationError(
                collection_type,
                f"missing name or description for {sample.get('address')}",
            )
        return name, description

    def finalize(self, collection_type: str, total_supply: int) -> bool:
        """
        Stores the collection. Best-effort: returns False (and logs) instead of
        raising when the metadata or the write is unavailable.
        """
        try:
            name, description = self.resolve_metadata(collection_type)
        except FinalizationError as e:
            logger.warning(f"[COLLECTION PARSE] {e}")
            return False

        try:
            self.collection_repo.insert(CollectionCreate(
                type=collection_type,
                name=name,
                description=description,
                total_supply=total_supply,
            ))
        except Exception as e:
            logger.error(f"[COLLECTION PARSE] Error saving collection {collection_type} to DB: {e}")
            return False

        logger.info(f"Saved collection '{name}' ({collection_type}) with {total_supply} NFTs")
        return True
