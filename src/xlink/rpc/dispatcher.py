"""Request decoding and dispatch.

Every request ends in exactly one RpcResponse. Gateway errors become error
envelopes with their own status; anything unexpected is logged and reported
as an internal error. Nothing raised by a handler escapes handle().
"""

import json
import logging
from typing import Any, get_args

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from xlink.errors import GatewayError, ProtocolError, UnsupportedOperation, ValidationError
from xlink.rpc.contracts import (
    REQUEST_TYPES,
    SENTINEL_ID,
    U64_MAX,
    BuyParams,
    BuyRequest,
    CreateParams,
    CreateRequest,
    GetAccountParams,
    GetAccountRequest,
    QuoteParams,
    QuoteRequest,
    RpcEnvelope,
    RpcRequest,
    RpcResponse,
    SellParams,
    SellRequest,
)
from xlink.solana.client import SolanaClient
from xlink.wallet.keygen import KeyGen

logger = logging.getLogger(__name__)

_REQUEST_ADAPTER = TypeAdapter(RpcRequest)

# request variant -> RpcDispatcher method
_HANDLERS = {
    BuyRequest: "buy",
    SellRequest: "sell",
    CreateRequest: "create",
    GetAccountRequest: "get_account",
    QuoteRequest: "quote",
}


def _check_exhaustive() -> None:
    variants = set(get_args(get_args(RpcRequest)[0]))
    missing = variants - set(_HANDLERS)
    if missing:
        names = ", ".join(sorted(v.__name__ for v in missing))
        raise RuntimeError(f"No handler for request variants: {names}")


_check_exhaustive()


def _summarize(error: PydanticValidationError, skip: int = 0) -> str:
    """One-line description of pydantic errors, locations relative to `skip`."""
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"][skip:])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_body(body: bytes) -> dict:
    """Parse a request body into a JSON object.

    Raises:
        ProtocolError: If the body is not a JSON object
    """
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as e:
        raise ProtocolError(f"invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ProtocolError("request must be a JSON object")
    return payload


def recover_id(payload: Any) -> int:
    """Best-effort request id, SENTINEL_ID when it is not a valid u64."""
    if not isinstance(payload, dict):
        return SENTINEL_ID
    request_id = payload.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        return SENTINEL_ID
    if not 0 <= request_id <= U64_MAX:
        return SENTINEL_ID
    return request_id


def decode_request(payload: dict):
    """Decode a JSON object into one of the request variants.

    Raises:
        ProtocolError: Malformed envelope or unknown method
        ValidationError: Known method with invalid params
    """
    try:
        envelope = RpcEnvelope.model_validate(payload)
    except PydanticValidationError as e:
        raise ProtocolError(f"invalid request: {_summarize(e)}") from e

    if envelope.method not in REQUEST_TYPES:
        raise ProtocolError(f"invalid method: {envelope.method}")

    try:
        return _REQUEST_ADAPTER.validate_python(envelope.model_dump())
    except PydanticValidationError as e:
        # loc is (method, "params", field, ...)
        raise ValidationError(
            f"invalid {envelope.method} params: {_summarize(e, skip=2)}"
        ) from e


class RpcDispatcher:
    """Routes decoded requests to their handlers.

    Args:
        keygen: Derives account keypairs
        solana: Executes quotes and swaps
    """

    def __init__(self, keygen: KeyGen, solana: SolanaClient):
        self.keygen = keygen
        self.solana = solana

    async def handle(self, body: bytes) -> tuple[int, RpcResponse]:
        """Process one raw request body.

        Returns:
            (HTTP status, response envelope)
        """
        request_id = SENTINEL_ID
        try:
            payload = parse_body(body)
            request_id = recover_id(payload)
            request = decode_request(payload)
            request_id = request.id
            result = await self.dispatch(request)
        except GatewayError as e:
            logger.warning(f"Request {request_id} failed: {type(e).__name__}: {e}")
            return e.status_code, RpcResponse.failure(request_id, e.message)
        except Exception:
            logger.exception(f"Request {request_id} failed with an internal error")
            return 500, RpcResponse.failure(request_id, "internal error")

        return 200, RpcResponse.success(request_id, result)

    async def dispatch(self, request) -> Any:
        """Run the handler for a decoded request and return its result."""
        handler = getattr(self, _HANDLERS[type(request)])
        logger.debug(f"Dispatching {request.method} request {request.id}")
        return await handler(request.params)

    def preflight(self, body: bytes = b"") -> RpcResponse:
        """Answer a CORS preflight; always succeeds."""
        try:
            request_id = recover_id(json.loads(body)) if body else SENTINEL_ID
        except (ValueError, RecursionError):
            request_id = SENTINEL_ID
        return RpcResponse.success(request_id, {})

    async def get_account(self, params: GetAccountParams) -> dict:
        account = self.keygen.derive_by_id(params.twitter_id)
        return account.to_dict()

    async def quote(self, params: QuoteParams) -> dict:
        return await self.solana.quote(params.input_mint, params.output_mint, params.amount)

    async def buy(self, params: BuyParams) -> dict:
        account = self.keygen.derive_by_id(params.twitter_id)
        signature = await self.solana.buy(account, params.token_id, params.amount)
        return {"signature": str(signature)}

    async def sell(self, params: SellParams) -> dict:
        account = self.keygen.derive_by_id(params.twitter_id)
        signature = await self.solana.sell(account, params.token_id, params.amount)
        return {"signature": str(signature)}

    async def create(self, params: CreateParams) -> dict:
        # TODO: token launch needs a launchpad provider next to Jupiter
        raise UnsupportedOperation("method not implemented: create")
