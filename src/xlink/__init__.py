"""x-link: custodial Solana swap gateway.

Signing keys for every linked account are derived on demand from a single
BIP-39 master secret and are never written anywhere.
"""

__version__ = "0.1.0"
