"""Solana network access: RPC, blockhash actor and Jupiter swaps."""

from xlink.solana.client import SolanaClient, build_transaction
from xlink.solana.fresh_hash import CachedBlockhash, FreshBlockhash
from xlink.solana.jupiter import JupiterBackend, SwapInstructions
from xlink.solana.ledger import LedgerClient

__all__ = [
    "CachedBlockhash",
    "FreshBlockhash",
    "JupiterBackend",
    "LedgerClient",
    "SolanaClient",
    "SwapInstructions",
    "build_transaction",
]
