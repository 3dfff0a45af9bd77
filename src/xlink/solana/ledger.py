"""Solana RPC access: recent blockhashes and transaction submission."""

import logging
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.models import TxOpts
from solders.hash import Hash
from solders.signature import Signature
from solders.transaction import Transaction

from xlink.errors import CollaboratorError
from xlink.solana.constants import SOL_BASE_PATH

logger = logging.getLogger(__name__)


class LedgerClient:
    """Thin wrapper over the solana-py async RPC client.

    Every failure surfaces as CollaboratorError so callers never see
    transport-specific exceptions.
    """

    def __init__(
        self,
        rpc_url: str = SOL_BASE_PATH,
        timeout: float = 30.0,
        client: Optional[AsyncClient] = None,
    ):
        self.rpc_url = rpc_url
        self._client = client or AsyncClient(rpc_url, timeout=timeout)

    async def get_latest_blockhash(self) -> Hash:
        """Fetch the latest blockhash from the cluster."""
        try:
            response = await self._client.get_latest_blockhash()
        except Exception as e:
            raise CollaboratorError(f"Solana RPC error: {e}", cause=e) from e
        return response.value.blockhash

    async def send_transaction(self, transaction: Transaction) -> Signature:
        """Submit a signed transaction.

        Returns:
            Transaction signature reported by the RPC node
        """
        try:
            response = await self._client.send_raw_transaction(
                bytes(transaction),
                opts=TxOpts(skip_preflight=False),
            )
        except Exception as e:
            raise CollaboratorError(f"Solana RPC error: {e}", cause=e) from e

        signature = response.value
        logger.info(f"Submitted transaction {signature}")
        return signature

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self._client.close()
