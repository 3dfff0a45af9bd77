"""Request-scoped accounts built from derived keypairs.

Accounts expose their keypair only through explicit accessors; they are not
keypairs themselves and never serialize private material.
"""

from solders.keypair import Keypair
from solders.pubkey import Pubkey


class _DerivedAccount:
    """Shared accessors for accounts backed by a derived keypair."""

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @property
    def pubkey(self) -> Pubkey:
        """Public key of the account wallet."""
        return self._keypair.pubkey()

    @property
    def wallet_address(self) -> str:
        """Base58 wallet address."""
        return str(self._keypair.pubkey())

    @property
    def signer(self) -> Keypair:
        """Keypair used to sign this account's transactions in memory."""
        return self._keypair


class Account(_DerivedAccount):
    """Account keyed by a numeric Twitter/X user id.

    Usage:
        account = keygen.derive_by_id(42)
        account.wallet_address  # base58 public key
    """

    def __init__(self, twitter_id: int, keypair: Keypair):
        super().__init__(keypair)
        self.twitter_id = twitter_id

    def to_dict(self) -> dict:
        """Public identity of the account."""
        return {"twitter_id": self.twitter_id, "wallet": self.wallet_address}

    def __repr__(self) -> str:
        return f"Account(twitter_id={self.twitter_id}, wallet={self.wallet_address})"


class HandleAccount(_DerivedAccount):
    """Account keyed by a textual handle.

    Lives in its own namespace: the same user reached through a handle and
    through an id owns two unrelated wallets.
    """

    def __init__(self, handle: str, keypair: Keypair):
        super().__init__(keypair)
        self.handle = handle

    def to_dict(self) -> dict:
        """Public identity of the account."""
        return {"handle": self.handle, "wallet": self.wallet_address}

    def __repr__(self) -> str:
        return f"HandleAccount(handle={self.handle!r}, wallet={self.wallet_address})"
