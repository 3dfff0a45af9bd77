"""Deterministic wallet derivation."""

from xlink.wallet.account import Account, HandleAccount
from xlink.wallet.keygen import KeyGen, derivation_path

__all__ = [
    "Account",
    "HandleAccount",
    "KeyGen",
    "derivation_path",
]
