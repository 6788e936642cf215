"""
Read/delete HTTP API for indexed NFTs.

API Endpoints:
    GET    /api/nfts/:id                  - Single NFT (long-lived cache headers)
    GET    /api/collections               - All indexed collections
    GET    /api/collections/:type         - Single collection
    GET    /api/collections/:type/nfts    - NFTs of a collection by rarity rank
    DELETE /api/collections/:type         - Remove a collection and its NFTs
                                            (Authorization: Bearer <server.admin_token>)

Start:
    python scripts/start_server.py
    python scripts/start_server.py --port 8000
"""

import argparse
import hmac
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, unquote, urlparse

from common.config import config
from common.database import db as _default_db
from common.logging.logger import get_logger, setup_logger
from common.repositories import CollectionRepository, NftRepository

logger = get_logger("api")


class IndexerAPIHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the indexer API."""

    database = None
    nft_repo: Optional[NftRepository] = None
    collection_repo: Optional[CollectionRepository] = None
    admin_token: Optional[str] = None
    cache_max_age: int = 31536000

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} - {format % args}")

    def _route(self):
        parsed = urlparse(self.path)
        parts = [unquote(p) for p in parsed.path.strip('/').split('/') if p]
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        return parts, params

    def do_GET(self):
        parts, params = self._route()
        try:
            if parts[:1] != ['api']:
                self._send_error(404, "Endpoint not found")
            elif len(parts) == 3 and parts[1] == 'nfts':
                self._api_nft(parts[2])
            elif parts[1:] == ['collections']:
                self._api_collections()
            elif len(parts) == 3 and parts[1] == 'collections':
                self._api_collection(parts[2])
            elif len(parts) == 4 and parts[1] == 'collections' and parts[3] == 'nfts':
                self._api_collection_nfts(parts[2], params)
            else:
                self._send_error(404, "Endpoint not found")
        except ValueError as e:
            self._send_error(400, str(e))
        except Exception as e:
            logger.error(f"API error on {self.path}: {e}")
            self._send_error(500, str(e))

    def do_DELETE(self):
        parts, _params = self._route()
        try:
            if len(parts) == 3 and parts[:2] == ['api', 'collections']:
                self._api_delete_collection(parts[2])
            else:
                self._send_error(404, "Endpoint not found")
        except Exception as e:
            logger.error(f"API error on DELETE {self.path}: {e}")
            self._send_error(500, str(e))

    # --- Response helpers ---

    def _send_json(self, data: Any, status: int = 200, headers: Optional[Dict[str, str]] = None):
        body = json.dumps(data, default=str).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def _send_error(self, status: int, message: str):
        self._send_json({'error': message, 'status': status}, status)

    def _authorized(self) -> bool:
        if not self.admin_token:
            return False
        expected = f"Bearer {self.admin_token}"
        provided = self.headers.get('Authorization', '')
        return hmac.compare_digest(provided.encode('utf-8'), expected.encode('utf-8'))

    # --- Endpoints ---

    def _api_nft(self, nft_id: str):
        nft = self.nft_repo.get_by_id(nft_id)
        if nft is None:
            self._send_error(404, "NFT not found")
            return
        self._send_json(nft.to_dict(), headers={
            'Cache-Control': f"public, max-age={self.cache_max_age}, immutable",
        })

    def _api_collections(self):
        collections = [c.to_dict() for c in self.collection_repo.get_all()]
        self._send_json({'collections': collections, 'count': len(collections)})

    def _api_collection(self, collection_type: str):
        collection = self.collection_repo.get_by_type(collection_type)
        if collection is None:
            self._send_error(404, "Collection not found")
            return
        self._send_json(collection.to_dict())

    def _api_collection_nfts(self, collection_type: str, params: Dict[str, str]):
        limit = int(params.get('limit', 100))
        offset = int(params.get('offset', 0))
        if limit < 1 or limit > 1000 or offset < 0:
            raise ValueError("limit must be 1-1000 and offset >= 0")
        nfts = self.nft_repo.get_ranked(collection_type, limit=limit, offset=offset)
        self._send_json({
            'type': collection_type,
            'nfts': [n.to_dict() for n in nfts],
            'total': self.nft_repo.get_count(collection_type),
            'limit': limit,
            'offset': offset,
        })

    def _api_delete_collection(self, collection_type: str):
        if not self._authorized():
            self._send_error(401, "Unauthorized")
            return
        with self.database.connection() as conn:
            nfts_deleted = self.nft_repo.delete_by_type(collection_type, conn=conn)
            collections_deleted = self.collection_repo.delete(collection_type, conn=conn)
        logger.info(f"Deleted collection {collection_type}: {nfts_deleted} NFTs")
        self._send_json({
            'type': collection_type,
            'nfts_deleted': nfts_deleted,
            'collection_deleted': bool(collections_deleted),
        })


class IndexerServer:
    """Serves the read/delete API over the indexer database."""

    def __init__(
        self,
        host: str = 'localhost',
        port: int = 3000,
        database=None,
        admin_token: Optional[str] = None,
        cache_max_age: Optional[int] = None,
    ):
        self.host = host
        self.port = port
        self.database = database or _default_db

        IndexerAPIHandler.database = self.database
        IndexerAPIHandler.nft_repo = NftRepository(self.database)
        IndexerAPIHandler.collection_repo = CollectionRepository(self.database)
        IndexerAPIHandler.admin_token = admin_token or config.get("server.admin_token")
        IndexerAPIHandler.cache_max_age = cache_max_age or config.get("server.cache_max_age")
        if not IndexerAPIHandler.admin_token:
            logger.warning("server.admin_token is not set; DELETE requests will be rejected")

        self.server = ThreadingHTTPServer((self.host, self.port), IndexerAPIHandler)
        # Port 0 binds an ephemeral port
        self.port = self.server.server_address[1]

    def start(self):
        logger.info(f"Starting indexer API at http://{self.host}:{self.port}")
        try:
            self.server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down server...")
        finally:
            self.server.server_close()

    def start_background(self) -> threading.Thread:
        thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        thread.start()
        return thread

    def shutdown(self):
        self.server.shutdown()
        self.server.server_close()


def main():
    parser = argparse.ArgumentParser(description="NFT indexer API server")
    parser.add_argument("--host", default=config.get("server.host"), help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.get("server.port"), help="Port")
    args = parser.parse_args()

    setup_logger("api", console_output=True)
    server = IndexerServer(host=args.host, port=args.port)
    server.start()


if __name__ == "__main__":
    main()
