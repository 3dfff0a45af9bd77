"""Jupiter DEX aggregator integration for Solana.

Uses the Jupiter Swap API for quotes and swap instructions.
API docs: https://dev.jup.ag/docs/swap-api
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from xlink.errors import CollaboratorError
from xlink.solana.constants import DEFAULT_SLIPPAGE_BPS, JUP_BASE_PATH

logger = logging.getLogger(__name__)


def parse_instruction(data: dict) -> Instruction:
    """Convert a Jupiter instruction object into a solders Instruction.

    Jupiter encodes instructions as:
        {"programId": str, "accounts": [{"pubkey", "isSigner", "isWritable"}],
         "data": base64 str}
    """
    try:
        accounts = [
            AccountMeta(
                Pubkey.from_string(meta["pubkey"]),
                is_signer=bool(meta["isSigner"]),
                is_writable=bool(meta["isWritable"]),
            )
            for meta in data.get("accounts", [])
        ]
        return Instruction(
            Pubkey.from_string(data["programId"]),
            base64.b64decode(data.get("data", "")),
            accounts,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CollaboratorError(f"Malformed Jupiter instruction: {e}", cause=e) from e


@dataclass
class SwapInstructions:
    """Unsigned instruction set for one swap."""

    compute_budget: list[Instruction] = field(default_factory=list)
    setup: list[Instruction] = field(default_factory=list)
    swap: Optional[Instruction] = None
    cleanup: Optional[Instruction] = None

    @classmethod
    def from_response(cls, data: dict) -> "SwapInstructions":
        """Build from a /swap-instructions response body."""
        if not data.get("swapInstruction"):
            raise CollaboratorError("Jupiter response has no swap instruction")

        cleanup = data.get("cleanupInstruction")
        return cls(
            compute_budget=[parse_instruction(ix) for ix in data.get("computeBudgetInstructions") or []],
            setup=[parse_instruction(ix) for ix in data.get("setupInstructions") or []],
            swap=parse_instruction(data["swapInstruction"]),
            cleanup=parse_instruction(cleanup) if cleanup else None,
        )

    def ordered(self) -> list[Instruction]:
        """Instructions in execution order."""
        ixs = [*self.compute_budget, *self.setup, self.swap]
        if self.cleanup is not None:
            ixs.append(self.cleanup)
        return ixs


class JupiterBackend:
    """Jupiter swap API client.

    Jupiter aggregates liquidity from Raydium, Orca, Meteora and other
    Solana DEXes; this client only asks for quotes and unsigned
    instructions. Signing and submission happen elsewhere.
    """

    def __init__(
        self,
        base_url: str = JUP_BASE_PATH,
        api_key: Optional[str] = None,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Jupiter backend.

        Args:
            base_url: Swap API base URL
            api_key: Optional API key for higher rate limits
            slippage_bps: Slippage tolerance in basis points
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.slippage_bps = slippage_bps
        self.timeout = timeout
        self._transport = transport

    def _get_headers(self) -> dict:
        """Get API headers."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self._get_headers(),
                    **kwargs,
                )
        except httpx.HTTPError as e:
            logger.error(f"Jupiter {path} request failed: {e}")
            raise CollaboratorError(f"Jupiter API unreachable: {e}", cause=e) from e

        if response.status_code != 200:
            logger.warning(f"Jupiter API error: {response.status_code} - {response.text}")
            raise CollaboratorError(f"Jupiter API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise CollaboratorError("Jupiter API returned invalid JSON", cause=e) from e

        if not isinstance(data, dict):
            raise CollaboratorError(f"Jupiter API returned {type(data).__name__}, expected an object")
        return data

    async def quote(self, input_mint: Pubkey, output_mint: Pubkey, amount: int) -> dict:
        """Get a swap quote.

        Args:
            input_mint: Mint being sold
            output_mint: Mint being bought
            amount: Input amount in base units

        Returns:
            Jupiter quote response, unmodified
        """
        logger.debug(f"Quote request: {amount} {input_mint} -> {output_mint}")
        return await self._request(
            "GET",
            "/quote",
            params={
                "inputMint": str(input_mint),
                "outputMint": str(output_mint),
                "amount": str(amount),
                "slippageBps": str(self.slippage_bps),
            },
        )

    async def swap_instructions(self, user: Pubkey, quote: dict) -> SwapInstructions:
        """Get the unsigned instructions executing a quote for a wallet."""
        data = await self._request(
            "POST",
            "/swap-instructions",
            json={
                "quoteResponse": quote,
                "userPublicKey": str(user),
                "wrapAndUnwrapSol": True,
            },
        )
        return SwapInstructions.from_response(data)

    async def instructions(
        self,
        user: Pubkey,
        input_mint: Pubkey,
        output_mint: Pubkey,
        amount: int,
    ) -> SwapInstructions:
        """Quote and fetch instructions in one step."""
        quote = await self.quote(input_mint, output_mint, amount)
        return await self.swap_instructions(user, quote)
