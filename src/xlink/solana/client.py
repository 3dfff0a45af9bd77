"""Swap execution on Solana for derived accounts."""

import logging
from typing import Optional

from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from xlink.errors import CollaboratorError
from xlink.solana.constants import NATIVE_MINT
from xlink.solana.fresh_hash import FreshBlockhash
from xlink.solana.jupiter import JupiterBackend, SwapInstructions
from xlink.solana.ledger import LedgerClient
from xlink.wallet.account import Account

logger = logging.getLogger(__name__)


def build_transaction(
    account: Account,
    instructions: SwapInstructions,
    recent_blockhash: Hash,
) -> Transaction:
    """Assemble and sign a swap transaction paid for by the account."""
    try:
        return Transaction.new_signed_with_payer(
            instructions.ordered(),
            account.pubkey,
            [account.signer],
            recent_blockhash,
        )
    except Exception as e:
        # solders raises on instructions that require signers we do not hold
        raise CollaboratorError(f"Could not build swap transaction: {e}", cause=e) from e


class SolanaClient:
    """Buys and sells tokens against native SOL through Jupiter.

    Combines the swap provider, the blockhash actor and the RPC node. Each
    call is independent; nothing here keeps per-account state.
    """

    def __init__(
        self,
        jupiter: JupiterBackend,
        ledger: LedgerClient,
        fresh_hash: FreshBlockhash,
        blockhash_timeout: Optional[float] = None,
    ):
        self.jupiter = jupiter
        self.ledger = ledger
        self.fresh_hash = fresh_hash
        self.blockhash_timeout = blockhash_timeout

    async def recent_blockhash(self) -> Hash:
        return await self.fresh_hash.get(timeout=self.blockhash_timeout)

    async def quote(self, input_mint: Pubkey, output_mint: Pubkey, amount: int) -> dict:
        return await self.jupiter.quote(input_mint, output_mint, amount)

    async def swap_transaction(
        self,
        account: Account,
        input_mint: Pubkey,
        output_mint: Pubkey,
        amount: int,
    ) -> Transaction:
        """Build a signed transaction swapping `amount` of input_mint."""
        instructions = await self.jupiter.instructions(
            account.pubkey, input_mint, output_mint, amount
        )
        recent_blockhash = await self.recent_blockhash()
        return build_transaction(account, instructions, recent_blockhash)

    async def buy(self, account: Account, mint: Pubkey, amount: int) -> Signature:
        """BUY `mint` spending `amount` lamports of native SOL."""
        logger.info(f"Buy {mint} for {amount} lamports from {account.wallet_address}")
        tx = await self.swap_transaction(account, NATIVE_MINT, mint, amount)
        return await self.ledger.send_transaction(tx)

    async def sell(self, account: Account, mint: Pubkey, amount: int) -> Signature:
        """SELL `amount` of `mint` for native SOL."""
        logger.info(f"Sell {amount} of {mint} from {account.wallet_address}")
        tx = await self.swap_transaction(account, mint, NATIVE_MINT, amount)
        return await self.ledger.send_transaction(tx)
