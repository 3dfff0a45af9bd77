"""Main entry point - runs the JSON-RPC gateway."""

import argparse
import asyncio
import logging
import sys
from getpass import getpass
from typing import Optional

import uvicorn
from dotenv import load_dotenv

from xlink.api.app import create_app
from xlink.config import Settings, get_settings
from xlink.errors import DerivationError
from xlink.rpc.dispatcher import RpcDispatcher
from xlink.solana.client import SolanaClient
from xlink.solana.fresh_hash import FreshBlockhash
from xlink.solana.jupiter import JupiterBackend
from xlink.solana.ledger import LedgerClient
from xlink.wallet.keygen import KeyGen

logger = logging.getLogger(__name__)


class Application:
    """Wires the collaborators together and serves the gateway.

    The blockhash actor and the RPC session live exactly as long as the
    HTTP server.
    """

    def __init__(self, settings: Settings, keygen: KeyGen):
        self.settings = settings
        self.keygen = keygen
        self.ledger: Optional[LedgerClient] = None
        self.fresh_hash: Optional[FreshBlockhash] = None

    def build_dispatcher(self) -> RpcDispatcher:
        """Create collaborators; must run inside the event loop."""
        settings = self.settings
        self.ledger = LedgerClient(settings.sol_rpc_url, timeout=settings.collaborator_timeout)
        self.fresh_hash = FreshBlockhash.start(
            self.ledger,
            interval=settings.blockhash_refresh_seconds,
            mailbox_size=settings.blockhash_mailbox_size,
            refresh_timeout=settings.collaborator_timeout,
        )
        jupiter = JupiterBackend(
            base_url=settings.jupiter_api_url,
            api_key=settings.jupiter_api_key,
            slippage_bps=settings.slippage_bps,
            timeout=settings.collaborator_timeout,
        )
        solana = SolanaClient(
            jupiter,
            self.ledger,
            self.fresh_hash,
            blockhash_timeout=settings.blockhash_timeout,
        )
        return RpcDispatcher(self.keygen, solana)

    async def start(self) -> None:
        """Serve until uvicorn receives SIGINT/SIGTERM."""
        app = create_app(self.build_dispatcher(), self.settings)
        config = uvicorn.Config(
            app,
            host=self.settings.gateway_host,
            port=self.settings.gateway_port,
            log_level="debug" if self.settings.debug else "info",
        )
        server = uvicorn.Server(config)
        logger.info(
            f"Starting gateway on {self.settings.gateway_host}:{self.settings.gateway_port}"
        )
        try:
            await server.serve()
        finally:
            await self._cleanup()

    async def _cleanup(self) -> None:
        """Cleanup resources."""
        logger.info("Cleaning up...")
        if self.fresh_hash is not None:
            await self.fresh_hash.stop()
        if self.ledger is not None:
            await self.ledger.close()
        logger.info("Cleanup complete")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xlink-gateway", description="Run the x-link gateway")
    parser.add_argument("--secret-file", help="File holding the mnemonic (default: SECRET_FILE)")
    parser.add_argument("--port", type=int, help="Listen port (default: GATEWAY_PORT or 1337)")
    parser.add_argument("--host", help="Listen address (default: GATEWAY_HOST)")
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.secret_file:
        overrides["secret_file"] = args.secret_file
    if args.port is not None:
        overrides["gateway_port"] = args.port
    if args.host:
        overrides["gateway_host"] = args.host
    settings = get_settings().model_copy(update=overrides)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Environment: {settings.environment}")
    logger.debug(f"Settings: {settings.get_safe_dict()}")

    passphrase = getpass("Passphrase: ")
    try:
        keygen = KeyGen.load(settings.secret_file, passphrase)
    except DerivationError as e:
        logger.critical(f"Cannot load master secret: {e}")
        return 1

    try:
        asyncio.run(Application(settings, keygen).start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    return 0


if __name__ == "__main__":
    sys.exit(main())
