"""
Upstream page sources.

The indexer only needs one operation from the chain: "give me the next page
of objects of type T after cursor C". GraphQLPageSource implements it over
HTTP with requests; tests substitute in-memory sources.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from common.config import config
from common.errors import FetchError
from common.logging.logger import get_logger

logger = get_logger("source")


GET_NFTS_BY_TYPE = """
query GetNftsByType($nftType: String!, $first: Int, $after: String) {
  objects(filter: { type: $nftType }, first: $first, after: $after) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      address
      asMoveObject {
        contents {
          json
          display {
            output
          }
        }
      }
    }
  }
}
"""


@dataclass
class Page:
    """One page of raw upstream records."""
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    end_cursor: Optional[str] = None
    has_next_page: bool = False


class PageSource(ABC):
    """Base class for paginated record sources."""

    @abstractmethod
    def fetch_page(
        self, collection_type: str, first: int, after: Optional[str] = None
    ) -> Optional[Page]:
        """
        Fetches up to *first* records of *collection_type* after *after*.

        Returns None when the source answered without a page object
        (treated as transient by the poll loop). Raises FetchError when the
        source is unreachable or the envelope is malformed.
        """
        raise NotImplementedError("Subclasses must implement fetch_page()")


class GraphQLPageSource(PageSource):
    """
    Fetches NFT pages from a Sui-style GraphQL endpoint.

    Args:
        endpoint: GraphQL URL (defaults to config "upstream.graphql_endpoint").
        timeout: Request timeout in seconds.
        session: Optional requests.Session (shared connection pool).
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint or config.get("upstream.graphql_endpoint")
        self.timeout = timeout or config.get("upstream.timeout_seconds")
        self._session = session

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        if self._session is not None:
            return self._session.post(self.endpoint, json=payload, timeout=self.timeout)
        return requests.post(self.endpoint, json=payload, timeout=self.timeout)

    def fetch_page(
        self, collection_type: str, first: int, after: Optional[str] = None
    ) -> Optional[Page]:
        payload = {
            "query": GET_NFTS_BY_TYPE,
            "variables": {"nftType": collection_type, "first": first, "after": after},
        }

        try:
            response = self._post(payload)
        except requests.Timeout as e:
            raise FetchError(self.endpoint, f"timeout after {self.timeout}s") from e
        except requests.RequestException as e:
            raise FetchError(self.endpoint, str(e)) from e

        if response.status_code != 200:
            raise FetchError(self.endpoint, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise FetchError(self.endpoint, "response is not JSON") from e

        if not isinstance(body, dict):
            raise FetchError(self.endpoint, "response is not a JSON object")

        errors = body.get("errors")
        if errors:
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            raise FetchError(self.endpoint, f"GraphQL errors: {messages}")

        return parse_objects(body.get("data"))


def parse_objects(data: Any) -> Optional[Page]:
    """Turns the `data` member of a GetNftsByType response into a Page.

    Returns None when there is no `objects.nodes` list.
    """
    if not isinstance(data, dict):
        return None
    objects = data.get("objects")
    if not isinstance(objects, dict):
        return None
    nodes = objects.get("nodes")
    if not isinstance(nodes, list):
        return None

    page_info = objects.get("pageInfo") or {}
    if not isinstance(page_info, dict):
        page_info = {}

    return Page(
        nodes=[n for n in nodes if isinstance(n, dict)],
        end_cursor=page_info.get("endCursor"),
        has_next_page=bool(page_info.get("hasNextPage")),
    )
