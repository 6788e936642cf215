"""Tests for api/server.py against a live server on an ephemeral port."""

import pytest
import requests

from api.server import IndexerServer
from common.models import Attribute, CollectionCreate, NftCreate

TYPE = "0xabc::nft::Nft"
TOKEN = "s3cret"


@pytest.fixture
def server(memory_db, nft_repo, collection_repo):
    nft_repo.insert_batch([
        NftCreate(id=f"0x{i}", name=f"Test #{i}", type=TYPE, image_url=f"https://img/{i}.png",
                  attributes=[Attribute("bg", "red" if i else "gold")])
        for i in range(3)
    ])
    nft_repo.update_rarity_batch([("0x0", 1), ("0x1", 2), ("0x2", 3)])
    collection_repo.insert(CollectionCreate(type=TYPE, name="Test", description="d", total_supply=3))

    srv = IndexerServer(host="127.0.0.1", port=0, database=memory_db, admin_token=TOKEN)
    srv.start_background()
    yield f"http://127.0.0.1:{srv.port}"
    srv.shutdown()


class TestReadEndpoints:
    def test_get_nft(self, server):
        resp = requests.get(f"{server}/api/nfts/0x1", timeout=5)
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == "0x1"
        assert body["rarity"] == 2
        assert body["attributes"] == [{"key": "bg", "value": "red"}]
        assert resp.headers["Cache-Control"] == "public, max-age=31536000, immutable"

    def test_get_nft_not_found(self, server):
        resp = requests.get(f"{server}/api/nfts/0xmissing", timeout=5)
        assert resp.status_code == 404
        assert "Cache-Control" not in resp.headers

    def test_list_collections(self, server):
        body = requests.get(f"{server}/api/collections", timeout=5).json()
        assert body["count"] == 1
        assert body["collections"][0]["type"] == TYPE

    def test_get_collection(self, server):
        assert requests.get(f"{server}/api/collections/{TYPE}", timeout=5).json()["total_supply"] == 3
        assert requests.get(f"{server}/api/collections/0xnone", timeout=5).status_code == 404

    def test_collection_nfts_by_rank(self, server):
        body = requests.get(f"{server}/api/collections/{TYPE}/nfts?limit=2&offset=1", timeout=5).json()
        assert [n["id"] for n in body["nfts"]] == ["0x1", "0x2"]
        assert body["total"] == 3

    def test_bad_limit(self, server):
        resp = requests.get(f"{server}/api/collections/{TYPE}/nfts?limit=abc", timeout=5)
        assert resp.status_code == 400

    def test_unknown_route(self, server):
        assert requests.get(f"{server}/nope", timeout=5).status_code == 404


class TestDeleteCollection:
    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": TOKEN}])
    def test_rejects_bad_token(self, server, nft_repo, headers):
        resp = requests.delete(f"{server}/api/collections/{TYPE}", headers=headers, timeout=5)
        assert resp.status_code == 401
        assert nft_repo.get_count(TYPE) == 3

    def test_deletes_collection_and_nfts(self, server, nft_repo, collection_repo):
        resp = requests.delete(
            f"{server}/api/collections/{TYPE}",
            headers={"Authorization": f"Bearer {TOKEN}"},
            timeout=5,
        )
        assert resp.status_code == 200
        assert resp.json() == {"type": TYPE, "nfts_deleted": 3, "collection_deleted": True}
        assert nft_repo.get_count(TYPE) == 0
        assert collection_repo.get_by_type(TYPE) is None


def test_delete_without_configured_token_is_unauthorized(memory_db):
    srv = IndexerServer(host="127.0.0.1", port=0, database=memory_db, admin_token=None)
    srv.start_background()
    try:
        resp = requests.delete(
            f"http://127.0.0.1:{srv.port}/api/collections/{TYPE}",
            headers={"Authorization": "Bearer "},
            timeout=5,
        )
        assert resp.status_code == 401
    finally:
        srv.shutdown()
