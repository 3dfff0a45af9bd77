"""Pytest configuration and fixtures."""

import asyncio
import base64
import json
import os
import struct
from typing import Optional

import httpx
import pytest
import pytest_asyncio
from solders.hash import Hash
from solders.signature import Signature

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["CORS_ORIGINS"] = "*"

from xlink.solana.client import SolanaClient
from xlink.solana.fresh_hash import FreshBlockhash
from xlink.solana.jupiter import JupiterBackend
from xlink.rpc.dispatcher import RpcDispatcher
from xlink.wallet.keygen import KeyGen

# 64 arbitrary bytes standing in for a BIP-39 seed
SECRET = b"x-link test master secret; never use this for real funds!!!!!!!!"
assert len(SECRET) == 64

SYSTEM_PROGRAM = "11111111111111111111111111111111"
COMPUTE_BUDGET_PROGRAM = "ComputeBudget111111111111111111111111111111"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"

QUOTE_RESPONSE = {
    "inputMint": "So11111111111111111111111111111111111111112",
    "inAmount": "1000000",
    "outputMint": BONK_MINT,
    "outAmount": "123456789",
    "otherAmountThreshold": "98765431",
    "swapMode": "ExactIn",
    "slippageBps": 2000,
    "priceImpactPct": "0.0012",
    "routePlan": [{"swapInfo": {"label": "Raydium"}, "percent": 100}],
    "platformFee": None,
}


class StubLedger:
    """Ledger double returning scripted blockhashes.

    Each entry of `script` is returned (or raised, for exceptions) by one
    get_latest_blockhash() call. Once exhausted, `then` is returned forever,
    or a RuntimeError raised when `then` is None.
    """

    def __init__(self, script=(), then: Optional[Hash] = None):
        self.script = list(script)
        self.then = then
        self.calls = 0
        self.sent = []
        self.gate: Optional[asyncio.Event] = None

    async def get_latest_blockhash(self) -> Hash:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.script:
            item = self.script.pop(0)
        elif self.then is not None:
            item = self.then
        else:
            item = RuntimeError("ledger unavailable")
        if isinstance(item, BaseException):
            raise item
        return item

    async def send_transaction(self, transaction) -> Signature:
        self.sent.append(transaction)
        return transaction.signatures[0]

    async def close(self) -> None:
        pass


def compute_budget_ix() -> dict:
    # SetComputeUnitLimit(200_000)
    data = bytes([2]) + struct.pack("<I", 200_000)
    return {
        "programId": COMPUTE_BUDGET_PROGRAM,
        "accounts": [],
        "data": base64.b64encode(data).decode(),
    }


def transfer_ix(user: str, lamports: int = 1000) -> dict:
    # System transfer to self; stands in for the route instruction
    data = struct.pack("<IQ", 2, lamports)
    return {
        "programId": SYSTEM_PROGRAM,
        "accounts": [
            {"pubkey": user, "isSigner": True, "isWritable": True},
            {"pubkey": user, "isSigner": False, "isWritable": True},
        ],
        "data": base64.b64encode(data).decode(),
    }


class FakeJupiter:
    """httpx transport handler emulating the Jupiter swap API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.quote_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/quote"):
            if self.quote_status != 200:
                return httpx.Response(self.quote_status, text="upstream exploded")
            return httpx.Response(200, json=QUOTE_RESPONSE)
        if request.url.path.endswith("/swap-instructions"):
            body = json.loads(request.content)
            user = body["userPublicKey"]
            return httpx.Response(
                200,
                json={
                    "computeBudgetInstructions": [compute_budget_ix()],
                    "setupInstructions": [],
                    "swapInstruction": transfer_ix(user),
                    "cleanupInstruction": None,
                    "addressLookupTableAddresses": [],
                },
            )
        return httpx.Response(404, text="not found")

    def last(self, suffix: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path.endswith(suffix)][-1]


async def eventually(check, timeout: float = 2.0, interval: float = 0.01):
    """Poll an async predicate until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        if await check():
            return
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


@pytest.fixture
def keygen() -> KeyGen:
    return KeyGen.from_seed(SECRET)


@pytest.fixture
def blockhash() -> Hash:
    return Hash.new_unique()


@pytest.fixture
def ledger(blockhash) -> StubLedger:
    return StubLedger(then=blockhash)


@pytest.fixture
def fake_jupiter() -> FakeJupiter:
    return FakeJupiter()


@pytest.fixture
def jupiter(fake_jupiter) -> JupiterBackend:
    return JupiterBackend(
        base_url="https://jupiter.test/swap/v1",
        transport=httpx.MockTransport(fake_jupiter),
    )


@pytest_asyncio.fixture
async def fresh_hash(ledger):
    handle = FreshBlockhash.start(ledger, interval=0.05)
    yield handle
    await handle.stop()


@pytest.fixture
def solana(jupiter, ledger, fresh_hash) -> SolanaClient:
    return SolanaClient(jupiter, ledger, fresh_hash, blockhash_timeout=2.0)


@pytest.fixture
def dispatcher(keygen, solana) -> RpcDispatcher:
    return RpcDispatcher(keygen, solana)
