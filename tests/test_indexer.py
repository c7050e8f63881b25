"""
Tests for the HTTP indexer backend (mocked transport).
"""

import json

import httpx
import pytest
from conftest import make_txid

from angorspend.backends.indexer import HttpIndexer
from angorspend.errors import BroadcastError, RemoteLookupError

BASE_URL = "https://indexer.test/api/v1"


def make_indexer(handler) -> HttpIndexer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpIndexer(BASE_URL + "/", client=client)


def json_handler(routes: dict, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        path = request.url.path.removeprefix("/api/v1/")
        if path not in routes:
            return httpx.Response(404, text="not found")
        status, body = routes[path]
        return httpx.Response(status, content=json.dumps(body))

    return handler


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_projects(self):
        seen: list[httpx.Request] = []
        routes = {
            "query/Angor/projects": (
                200,
                [
                    {
                        "projectIdentifier": "angor1abc",
                        "founderKey": "02" + "11" * 32,
                        "createdOnBlock": 123,
                    }
                ],
            )
        }
        indexer = make_indexer(json_handler(routes, seen))

        projects = await indexer.list_projects(limit=21, offset=42)

        assert projects[0].project_identifier == "angor1abc"
        assert seen[0].url.params["limit"] == "21"
        assert seen[0].url.params["offset"] == "42"
        assert str(seen[0].url).startswith(BASE_URL + "/query/Angor/projects")
        await indexer.close()

    @pytest.mark.asyncio
    async def test_null_listing_is_empty(self):
        indexer = make_indexer(json_handler({"query/Angor/projects/p1/investments": (200, None)}))
        assert await indexer.list_investments("p1") == []

    @pytest.mark.asyncio
    async def test_list_investments(self):
        routes = {
            "query/Angor/projects/p1/investments": (
                200,
                [{"transactionId": make_txid(1)}, {"transactionId": make_txid(2)}],
            )
        }
        indexer = make_indexer(json_handler(routes))

        investments = await indexer.list_investments("p1")

        assert [i.transaction_id for i in investments] == [make_txid(1), make_txid(2)]

    @pytest.mark.asyncio
    async def test_malformed_investment_does_not_reject_listing(self):
        routes = {
            "query/Angor/projects/p1/investments": (
                200,
                [{"transactionId": None}, {"transactionId": make_txid(2)}],
            )
        }
        indexer = make_indexer(json_handler(routes))

        investments = await indexer.list_investments("p1")

        assert len(investments) == 2
        assert investments[0].transaction_id is None
        assert investments[1].require_txid() == make_txid(2)

    @pytest.mark.asyncio
    async def test_get_transaction_defaults(self):
        txid = make_txid(1)
        routes = {
            f"tx/{txid}": (
                200,
                {
                    "txid": txid,
                    "vout": [{"value": 5000, "n": 0, "scriptpubkey": "0014" + "00" * 20}],
                },
            )
        }
        indexer = make_indexer(json_handler(routes))

        tx = await indexer.get_transaction(txid)

        assert tx.vout[0].value == 5000
        assert tx.vout[0].scriptpubkey_address == "unknown"
        assert tx.vout[0].scriptpubkey_type == "unknown"

    @pytest.mark.asyncio
    async def test_missing_transaction(self):
        txid = make_txid(1)
        indexer = make_indexer(json_handler({f"tx/{txid}": (200, None)}))
        with pytest.raises(RemoteLookupError, match="not found"):
            await indexer.get_transaction(txid)

    @pytest.mark.asyncio
    async def test_outspends_and_is_output_spent(self):
        txid = make_txid(1)
        routes = {
            f"tx/{txid}/outspends": (
                200,
                [{"spent": True, "txid": make_txid(9), "vin": 0}, {"spent": False}],
            )
        }
        indexer = make_indexer(json_handler(routes))

        assert await indexer.is_output_spent(txid, 0) is True
        assert await indexer.is_output_spent(txid, 1) is False
        with pytest.raises(RemoteLookupError, match="no index 2"):
            await indexer.is_output_spent(txid, 2)


class TestFailures:
    @pytest.mark.asyncio
    async def test_http_error(self):
        indexer = make_indexer(json_handler({"query/Angor/projects": (500, {"error": "boom"})}))
        with pytest.raises(RemoteLookupError, match="request failed"):
            await indexer.list_projects(21, 0)

    @pytest.mark.asyncio
    async def test_not_found(self):
        indexer = make_indexer(json_handler({}))
        with pytest.raises(RemoteLookupError):
            await indexer.get_outspends(make_txid(1))

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(RemoteLookupError, match="invalid JSON"):
            await make_indexer(handler).list_projects(21, 0)

    @pytest.mark.asyncio
    async def test_shape_mismatch(self):
        routes = {"query/Angor/projects": (200, [{"projectIdentifier": "angor1abc"}])}
        indexer = make_indexer(json_handler(routes))
        with pytest.raises(RemoteLookupError, match="Unexpected response shape"):
            await indexer.list_projects(21, 0)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RemoteLookupError):
            await make_indexer(handler).get_transaction(make_txid(1))


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_posts_raw_hex(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=make_txid(7) + "\n")

        txid = await make_indexer(handler).broadcast_transaction("0200abcd")

        assert txid == make_txid(7)
        assert seen[0].method == "POST"
        assert str(seen[0].url) == BASE_URL + "/tx"
        assert seen[0].headers["content-type"] == "text/plain"
        assert seen[0].content == b"0200abcd"

    @pytest.mark.asyncio
    async def test_rejected(self):
        def handler(request):
            return httpx.Response(400, text="sendrawtransaction RPC error: bad-txns")

        with pytest.raises(BroadcastError, match="bad-txns") as exc_info:
            await make_indexer(handler).broadcast_transaction("0200abcd")
        assert exc_info.value.tx_hex == "0200abcd"

    @pytest.mark.asyncio
    async def test_empty_response(self):
        def handler(request):
            return httpx.Response(200, text="  ")

        with pytest.raises(BroadcastError, match="empty"):
            await make_indexer(handler).broadcast_transaction("0200abcd")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BroadcastError) as exc_info:
            await make_indexer(handler).broadcast_transaction("0200abcd")
        assert exc_info.value.tx_hex == "0200abcd"
