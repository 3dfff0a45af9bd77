"""Solana network constants."""

from solders.pubkey import Pubkey

SOL_BASE_PATH = "https://api.mainnet-beta.solana.com"
JUP_BASE_PATH = "https://api.jup.ag/swap/v1"

# Wrapped SOL; buy spends it, sell receives it
NATIVE_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")

DEFAULT_SLIPPAGE_BPS = 2000  # 20%

HASH_EXPIRATION_SECONDS = 15.0
