"""Print the wallet address for an account.

Usage:
    python -m xlink.wallet --twitter-id 1722992406616756224 --secret-file secret.txt
    python -m xlink.wallet --handle @someone --secret-file secret.txt

The passphrase is always prompted for. Private keys are never printed.
"""

import argparse
import logging
import sys
from getpass import getpass

from xlink.errors import DerivationError, ValidationError
from xlink.wallet.keygen import KeyGen, derivation_path

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xlink-wallet",
        description="Derive the public wallet address of an account",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--twitter-id", type=int, help="Numeric account id (id scheme)")
    target.add_argument("--handle", help="Account handle (handle scheme)")
    parser.add_argument("--secret-file", required=True, help="File holding the mnemonic")
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    passphrase = getpass("Passphrase: ")

    try:
        keygen = KeyGen.load(args.secret_file, passphrase)
        if args.handle is not None:
            account = keygen.derive_by_handle(args.handle)
            print("scheme:  handle")
            print(f"handle:  {account.handle}")
        else:
            account = keygen.derive_by_id(args.twitter_id)
            print("scheme:  id")
            print(f"id:      {account.twitter_id}")
            print(f"path:    {derivation_path(account.twitter_id)}")
    except (DerivationError, ValidationError) as e:
        logger.error(f"Key derivation failed: {e}")
        return 1

    print(f"wallet:  {account.wallet_address}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
