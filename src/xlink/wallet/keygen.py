"""Deterministic Solana key derivation from a single master secret.

Two independent namespaces are supported:

- Id scheme: a 64-bit account id is split into two 32-bit fields which
  become the account and change levels of a Solana BIP-44 path
  (m/44'/501'/account'/change'), expanded with SLIP-10 ed25519.
- Handle scheme: SHA-512(secret || handle) is used directly as key seed.

The schemes never agree on a key for "the same" user. Pick one per account.
"""

import hashlib
import logging
from pathlib import Path

from bip_utils import Bip32Slip10Ed25519, Bip39SeedGenerator
from solders.keypair import Keypair

from xlink.errors import DerivationError, ValidationError
from xlink.wallet.account import Account, HandleAccount

logger = logging.getLogger(__name__)

SEED_LENGTH = 64
PURPOSE = 44
SOLANA_COIN_TYPE = 501
U64_MAX = 2**64 - 1

_U32_MASK = 0xFFFFFFFF
_INDEX_MASK = 0x7FFFFFFF  # hardened indexes carry 31 bits


def derivation_path(twitter_id: int) -> str:
    """Get the BIP-44 derivation path for an account id.

    The high 32 bits select the account level, the low 32 bits the change
    level. Ed25519 only supports hardened children, whose index holds 31
    bits, so a field with its top bit set contributes its low 31 bits and
    the two top bits are appended as a fifth hardened level. Ids whose
    fields fit in 31 bits keep the standard four-level path.

    Args:
        twitter_id: Unsigned 64-bit account id

    Returns:
        Path string such as m/44'/501'/401165431'/186011648'
    """
    _check_id(twitter_id)
    account = twitter_id >> 32
    change = twitter_id & _U32_MASK

    path = (
        f"m/{PURPOSE}'/{SOLANA_COIN_TYPE}'"
        f"/{account & _INDEX_MASK}'/{change & _INDEX_MASK}'"
    )
    flags = (account >> 31) << 1 | (change >> 31)
    if flags:
        path += f"/{flags}'"
    return path


def _check_id(twitter_id: int) -> None:
    if isinstance(twitter_id, bool) or not isinstance(twitter_id, int):
        raise ValidationError(f"account id must be an integer, got {type(twitter_id).__name__}")
    if not 0 <= twitter_id <= U64_MAX:
        raise ValidationError(f"account id out of range: {twitter_id}")


class KeyGen:
    """Derives account keypairs from a 64-byte master secret.

    Holds no state besides the secret; safe to share across any number of
    concurrent requests. Keypairs are rebuilt on every call and never cached.

    Usage:
        keygen = KeyGen.load("secret.txt", passphrase)
        account = keygen.derive_by_id(1722992406616756224)
    """

    def __init__(self, secret: bytes):
        if not isinstance(secret, (bytes, bytearray)) or len(secret) != SEED_LENGTH:
            raise DerivationError(f"master secret must be {SEED_LENGTH} bytes")
        self._secret = bytes(secret)

    @classmethod
    def from_seed(cls, secret: bytes) -> "KeyGen":
        """Build from a raw 64-byte BIP-39 seed."""
        return cls(secret)

    @classmethod
    def load(cls, secret_file: str, passphrase: str) -> "KeyGen":
        """Load the mnemonic from disk and turn it into the master secret.

        Args:
            secret_file: Path to a file containing only the mnemonic
            passphrase: BIP-39 passphrase (may be empty)

        Raises:
            DerivationError: If the file is unreadable or the mnemonic invalid
        """
        try:
            mnemonic = Path(secret_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise DerivationError(f"cannot read secret file {secret_file}", cause=e) from e

        if not mnemonic:
            raise DerivationError(f"secret file {secret_file} is empty")

        try:
            seed = Bip39SeedGenerator(mnemonic).Generate(passphrase)
        except Exception as e:
            # bip_utils messages can quote mnemonic words
            raise DerivationError("secret file does not contain a valid mnemonic", cause=e) from e

        logger.info("Master secret loaded")
        return cls(seed)

    def keypair_for_id(self, twitter_id: int) -> Keypair:
        """Derive the raw keypair for an account id."""
        path = derivation_path(twitter_id)
        try:
            node = Bip32Slip10Ed25519.FromSeed(self._secret).DerivePath(path)
            private_key = node.PrivateKey().Raw().ToBytes()
            return Keypair.from_seed(private_key[:32])
        except Exception as e:
            raise DerivationError(f"key derivation failed for path {path}", cause=e) from e

    def keypair_for_handle(self, handle: str) -> Keypair:
        """Derive the raw keypair for a handle.

        The ed25519 secret is the first 32 bytes of SHA-512(secret || handle).
        """
        if not isinstance(handle, str) or not handle:
            raise ValidationError("handle must be a non-empty string")

        digest = hashlib.sha512(self._secret + handle.encode("utf-8")).digest()
        try:
            return Keypair.from_seed(digest[:32])
        except Exception as e:
            raise DerivationError("key derivation failed for handle", cause=e) from e

    def derive_by_id(self, twitter_id: int) -> Account:
        """Derive the account for a numeric id."""
        return Account(twitter_id, self.keypair_for_id(twitter_id))

    def derive_by_handle(self, handle: str) -> HandleAccount:
        """Derive the account for a handle (separate namespace)."""
        return HandleAccount(handle, self.keypair_for_handle(handle))

    def __repr__(self) -> str:
        return "KeyGen(secret=***)"
