"""Tests for request dispatch end to end against stubbed collaborators."""

import asyncio
import json

import httpx
import pytest

from xlink.rpc.contracts import SENTINEL_ID
from xlink.rpc.dispatcher import RpcDispatcher
from xlink.solana.client import SolanaClient
from xlink.solana.constants import NATIVE_MINT
from xlink.solana.jupiter import JupiterBackend

from conftest import BONK_MINT, QUOTE_RESPONSE


def body(method, params, request_id=1) -> bytes:
    return json.dumps(
        {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
    ).encode()


class TestDispatcher:
    """Tests for RpcDispatcher.handle()."""

    @pytest.mark.asyncio
    async def test_get_account(self, dispatcher, keygen):
        status, response = await dispatcher.handle(body("getAccount", {"twitterId": 42}, 5))

        assert status == 200
        assert response.id == 5
        assert response.result == {
            "twitter_id": 42,
            "wallet": keygen.derive_by_id(42).wallet_address,
        }

    @pytest.mark.asyncio
    async def test_buy(self, dispatcher, keygen, ledger, blockhash, fake_jupiter):
        status, response = await dispatcher.handle(
            body("buy", {"twitterId": 42, "tokenId": BONK_MINT, "amount": 1_000_000}, 11)
        )

        assert status == 200, response.error
        assert response.id == 11
        assert len(ledger.sent) == 1

        tx = ledger.sent[0]
        account = keygen.derive_by_id(42)
        assert tx.message.account_keys[0] == account.pubkey
        assert tx.message.recent_blockhash == blockhash
        tx.verify()
        assert response.result == {"signature": str(tx.signatures[0])}

        quote = fake_jupiter.last("/quote")
        assert quote.url.params["inputMint"] == str(NATIVE_MINT)
        assert quote.url.params["outputMint"] == BONK_MINT
        assert quote.url.params["amount"] == "1000000"
        swap = json.loads(fake_jupiter.last("/swap-instructions").content)
        assert swap["userPublicKey"] == account.wallet_address

    @pytest.mark.asyncio
    async def test_sell(self, dispatcher, keygen, ledger, fake_jupiter):
        status, response = await dispatcher.handle(
            body("sell", {"twitterId": 7, "tokenId": BONK_MINT, "amount": 500})
        )

        assert status == 200, response.error
        tx = ledger.sent[0]
        assert tx.message.account_keys[0] == keygen.derive_by_id(7).pubkey
        assert response.result == {"signature": str(tx.signatures[0])}

        quote = fake_jupiter.last("/quote")
        assert quote.url.params["inputMint"] == BONK_MINT
        assert quote.url.params["outputMint"] == str(NATIVE_MINT)

    @pytest.mark.asyncio
    async def test_quote_returned_verbatim(self, dispatcher):
        status, response = await dispatcher.handle(
            body("quote", {"inputMint": str(NATIVE_MINT), "outputMint": BONK_MINT, "amount": 1})
        )
        assert status == 200
        assert response.result == QUOTE_RESPONSE

    @pytest.mark.asyncio
    async def test_create_not_implemented(self, dispatcher, ledger):
        status, response = await dispatcher.handle(
            body(
                "create",
                {
                    "twitterId": 1,
                    "amount": 10,
                    "token": {"name": "Bonk", "ticker": "BONK", "uri": "", "description": ""},
                },
                3,
            )
        )
        assert status == 400
        assert response.id == 3
        assert response.error == "method not implemented: create"
        assert ledger.sent == []

    @pytest.mark.asyncio
    async def test_create_params_still_validated(self, dispatcher):
        status, response = await dispatcher.handle(body("create", {"twitterId": 1}, 3))
        assert status == 400
        assert response.error.startswith("invalid create params")

    @pytest.mark.asyncio
    async def test_unknown_method(self, dispatcher):
        status, response = await dispatcher.handle(body("explode", {}, 8))
        assert status == 400
        assert response.id == 8
        assert response.error == "invalid method: explode"

    @pytest.mark.asyncio
    async def test_malformed_json_uses_sentinel_id(self, dispatcher):
        status, response = await dispatcher.handle(b'{"jsonrpc": "2.0", "id": 4,')
        assert status == 400
        assert response.id == SENTINEL_ID
        assert response.error.startswith("invalid JSON")

    @pytest.mark.asyncio
    async def test_deeply_nested_body_is_a_protocol_error(self, dispatcher):
        status, response = await dispatcher.handle(b"[" * 100_000 + b"]" * 100_000)
        assert status == 400
        assert response.id == SENTINEL_ID
        assert response.error.startswith("invalid JSON")

    @pytest.mark.asyncio
    async def test_string_id_is_rejected_consistently(self, dispatcher):
        for method, params in (("getAccount", {"twitterId": 1}), ("explode", {})):
            payload = {"jsonrpc": "2.0", "id": "7", "method": method, "params": params}
            status, response = await dispatcher.handle(json.dumps(payload).encode())
            assert status == 400
            assert response.id == SENTINEL_ID

    @pytest.mark.asyncio
    async def test_invalid_params_keep_request_id(self, dispatcher, ledger):
        status, response = await dispatcher.handle(
            body("buy", {"twitterId": 42, "tokenId": "garbage", "amount": 1}, 12)
        )
        assert status == 400
        assert response.id == 12
        assert response.error.startswith("invalid buy params")
        assert ledger.sent == []

    @pytest.mark.asyncio
    async def test_collaborator_failure(self, dispatcher, fake_jupiter, ledger):
        fake_jupiter.quote_status = 500
        status, response = await dispatcher.handle(
            body("buy", {"twitterId": 42, "tokenId": BONK_MINT, "amount": 1}, 13)
        )
        assert status == 400
        assert response.id == 13
        assert "Jupiter API error" in response.error
        assert ledger.sent == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, keygen, ledger, fresh_hash):
        def crash(request):
            raise RuntimeError("kaboom")

        jupiter = JupiterBackend(
            base_url="https://jupiter.test/swap/v1",
            transport=httpx.MockTransport(crash),
        )
        dispatcher = RpcDispatcher(keygen, SolanaClient(jupiter, ledger, fresh_hash))

        status, response = await dispatcher.handle(
            body("quote", {"inputMint": str(NATIVE_MINT), "outputMint": BONK_MINT, "amount": 1}, 14)
        )
        assert status == 500
        assert response.id == 14
        assert response.error == "internal error"

    @pytest.mark.asyncio
    async def test_handlers_run_concurrently(self, dispatcher, keygen):
        requests = [body("getAccount", {"twitterId": i}, i) for i in range(20)]
        results = await asyncio.gather(*(dispatcher.handle(r) for r in requests))

        for i, (status, response) in enumerate(results):
            assert status == 200
            assert response.id == i
            assert response.result["wallet"] == keygen.derive_by_id(i).wallet_address

    @pytest.mark.asyncio
    async def test_preflight(self, dispatcher):
        assert dispatcher.preflight(b"").to_dict() == {
            "jsonrpc": "2.0",
            "id": SENTINEL_ID,
            "result": {},
        }
        assert dispatcher.preflight(b'{"id": 9}').id == 9
        assert dispatcher.preflight(b"garbage").id == SENTINEL_ID
        assert dispatcher.preflight(b"[" * 100_000 + b"]" * 100_000).id == SENTINEL_ID
