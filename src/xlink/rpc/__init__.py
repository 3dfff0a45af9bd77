"""JSON-RPC protocol: contracts and dispatch."""

from xlink.rpc.contracts import REQUEST_TYPES, SENTINEL_ID, RpcRequest, RpcResponse
from xlink.rpc.dispatcher import RpcDispatcher, decode_request

__all__ = [
    "REQUEST_TYPES",
    "SENTINEL_ID",
    "RpcDispatcher",
    "RpcRequest",
    "RpcResponse",
    "decode_request",
]
