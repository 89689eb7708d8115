import hashlib
import hmac
import json

import httpx
import pytest

from app.clients.email_client import HttpEmailSender, render_template
from app.clients.ledger_client import SolanaRpcLedger
from app.clients.mint_client import HttpMintService
from app.clients.payment_gateway import PayOSGateway, sign_payment_request
from app.clients.pinning_client import PinataStorage
from app.core.errors import ExternalServiceError
from app.services.nft_service import build_view_links


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_payment_signature_matches_known_vector():
    # HMAC-SHA256 over the sorted query string of the five signed fields
    signature = sign_payment_request("key", 1000, "https://c", "NOTARY 1", 42, "https://r")
    expected = hmac.new(
        b"key",
        b"amount=1000&cancelUrl=https://c&description=NOTARY 1&orderCode=42&returnUrl=https://r",
        hashlib.sha256,
    ).hexdigest()
    assert signature == expected


@pytest.mark.asyncio
async def test_gateway_creates_link_and_reads_status():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        if request.method == "POST":
            body = json.loads(request.content)
            assert body["orderCode"] == 7
            assert body["signature"]
            return httpx.Response(200, json={"code": "00", "data": {"checkoutUrl": "https://pay/7", "paymentLinkId": "pl"}})
        return httpx.Response(200, json={"code": "00", "data": {"status": "paid"}})

    async with _client(handler) as http:
        gateway = PayOSGateway(http, "cid", "key", "checksum", base_url="https://gw.test/")
        link = await gateway.create_link(7, 1000, "NOTARY x", "https://r", "https://c")
        assert link.checkout_url == "https://pay/7"
        assert await gateway.get_status(7) == "PAID"

    assert seen[0].url == "https://gw.test/v2/payment-requests"
    assert seen[0].headers["x-client-id"] == "cid"
    assert seen[1].url == "https://gw.test/v2/payment-requests/7"


@pytest.mark.asyncio
async def test_gateway_error_codes_raise():
    def handler(request):
        return httpx.Response(200, json={"code": "20", "desc": "Order exists"})

    async with _client(handler) as http:
        gateway = PayOSGateway(http, "cid", "key", "checksum")
        with pytest.raises(ExternalServiceError):
            await gateway.create_link(1, 1, "x", "r", "c")

    async with _client(handler) as http:
        with pytest.raises(ExternalServiceError):
            await PayOSGateway(http, None, None, None).get_status(1)


@pytest.mark.asyncio
async def test_ledger_submit_waits_for_confirmation():
    statuses = iter([None, {"confirmationStatus": "processed"}, {"confirmationStatus": "confirmed", "err": None}])

    def handler(request):
        body = json.loads(request.content)
        if body["method"] == "sendTransaction":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "SIG"})
        if body["method"] == "getSignatureStatuses":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": [next(statuses)]}})
        if body["method"] == "getBalance":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": 1500}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"message": "method not found"}})

    async with _client(handler) as http:
        ledger = SolanaRpcLedger(http, "https://rpc.test", confirm_attempts=5, confirm_interval=0)
        assert await ledger.submit_and_confirm("base64tx") == "SIG"
        assert await ledger.get_balance("addr") == 1500
        with pytest.raises(ExternalServiceError):
            await ledger.get_transaction("SIG")


@pytest.mark.asyncio
async def test_ledger_reports_failed_transaction():
    def handler(request):
        body = json.loads(request.content)
        if body["method"] == "sendTransaction":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "SIG"})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"value": [{"err": {"InstructionError": [0, "Custom"]}}]}})

    async with _client(handler) as http:
        ledger = SolanaRpcLedger(http, "https://rpc.test", confirm_attempts=2, confirm_interval=0)
        with pytest.raises(ExternalServiceError):
            await ledger.submit_and_confirm("base64tx")


@pytest.mark.asyncio
async def test_ledger_asset_metadata():
    def handler(request):
        body = json.loads(request.content)
        assert body["params"] == {"id": "MINT"}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {
            "content": {"json_uri": "https://gateway.test/ipfs/cid9", "metadata": {"name": "deed.pdf", "symbol": "DOC"}},
            "authorities": [{"address": "AUTH"}],
            "ownership": {"owner": "OWNER"},
        }})

    async with _client(handler) as http:
        metadata = await SolanaRpcLedger(http, "https://rpc.test").get_asset_metadata("MINT")
    assert metadata == {
        "mint": "MINT",
        "name": "deed.pdf",
        "symbol": "DOC",
        "uri": "https://gateway.test/ipfs/cid9",
        "update_authority": "AUTH",
        "owner": "OWNER",
    }


@pytest.mark.asyncio
async def test_mint_service_truncates_name():
    def handler(request):
        body = json.loads(request.content)
        assert len(body["name"]) == 32
        assert request.headers["Authorization"] == "Bearer relay-key"
        return httpx.Response(200, json={"mintAddress": "M1", "signature": "S1", "metadataAddress": "MD1"})

    async with _client(handler) as http:
        result = await HttpMintService(http, "https://relay.test", "relay-key").create_nft("x" * 40, "https://u")
    assert (result.mint_address, result.transaction_signature, result.metadata_address) == ("M1", "S1", "MD1")

    async with _client(handler) as http:
        with pytest.raises(ExternalServiceError):
            await HttpMintService(http, None, None).create_nft("x", "u")


@pytest.mark.asyncio
async def test_pinning_returns_gateway_uris():
    def handler(request):
        if request.url.path.endswith("pinJSONToIPFS"):
            assert json.loads(request.content)["pinataContent"] == {"a": 1}
            return httpx.Response(200, json={"IpfsHash": "cidJSON"})
        if request.url.path.endswith("download_link"):
            return httpx.Response(200, json={"data": "https://private.test/link"})
        return httpx.Response(200, json={"IpfsHash": "cidFILE"})

    async with _client(handler) as http:
        storage = PinataStorage(http, "jwt", "https://my.gateway/")
        pinned = await storage.pin(b"bytes", "deed.pdf")
        assert pinned.uri == "https://my.gateway/ipfs/cidFILE"
        assert (await storage.pin_json({"a": 1}, "meta.json")).cid == "cidJSON"
        assert await storage.create_access_link("cidFILE", 30) == "https://private.test/link"

    async with _client(handler) as http:
        with pytest.raises(ExternalServiceError):
            await PinataStorage(http, None, "g").pin(b"x", "x")


@pytest.mark.asyncio
async def test_email_sender_posts_rendered_template():
    captured = {}

    def handler(request):
        captured.update(json.loads(request.content))
        return httpx.Response(202, json={"id": "e1"})

    async with _client(handler) as http:
        sender = HttpEmailSender(http, "https://mail.test/send", "k", "no-reply@test")
        await sender.send("bob@example.com", "document_rejected", {"document_id": "d1", "feedback": "Blurry"})
    assert captured["to"] == ["bob@example.com"]
    assert "Blurry" in captured["text"]

    with pytest.raises(ValueError):
        render_template("unknown", {})

    async with _client(handler) as http:
        with pytest.raises(ExternalServiceError):
            await HttpEmailSender(http, None, None, "x").send("a@b.c", "document_rejected", {})


def test_view_links_follow_cluster():
    devnet = build_view_links("MINT", "https://gateway.pinata.cloud/ipfs/cid1", rpc_url="https://api.devnet.solana.com")
    assert devnet["explorer_link"] == "https://explorer.solana.com/address/MINT?cluster=devnet"
    assert devnet["solscan_link"] == "https://solscan.io/token/MINT?cluster=devnet"
    assert devnet["ipfs_link"].endswith("/ipfs/cid1")

    mainnet = build_view_links("MINT", "ar://not-ipfs", rpc_url="https://api.mainnet-beta.solana.com")
    assert mainnet["explorer_link"] == "https://explorer.solana.com/address/MINT"
    assert mainnet["ipfs_link"] is None
