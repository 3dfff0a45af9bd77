"""JSON-RPC request and response contracts.

Requests form a closed, tagged union keyed by ``method``; each variant
carries its own parameter model. Parameter names are camelCase on the wire.
"""

from typing import Annotated, Any, Literal, Optional, Union, get_args

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)
from pydantic.alias_generators import to_camel
from solders.pubkey import Pubkey

JSONRPC_VERSION = "2.0"
U64_MAX = 2**64 - 1

# Used as response id when the request id cannot be recovered
SENTINEL_ID = U64_MAX

U64 = Annotated[int, Field(ge=0, le=U64_MAX)]
Amount = Annotated[int, Field(gt=0, le=U64_MAX)]
# Strict: "7" and true are not request ids
RequestId = Annotated[int, Field(ge=0, le=U64_MAX, strict=True)]


def _parse_pubkey(value: Any) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    if not isinstance(value, str):
        raise ValueError("expected a base58-encoded 32-byte public key")
    try:
        return Pubkey.from_string(value)
    except ValueError:
        raise ValueError("expected a base58-encoded 32-byte public key") from None


PubkeyField = Annotated[
    Pubkey,
    BeforeValidator(_parse_pubkey),
    PlainSerializer(str, return_type=str),
]


class _Params(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class GetAccountParams(_Params):
    """Look up the wallet of an account."""

    twitter_id: U64


class BuyParams(_Params):
    """Spend `amount` lamports of SOL on `token_id`."""

    twitter_id: U64
    token_id: PubkeyField
    amount: Amount


class SellParams(_Params):
    """Sell `amount` base units of `token_id` for SOL."""

    twitter_id: U64
    token_id: PubkeyField
    amount: Amount


class QuoteParams(_Params):
    """Quote `amount` base units of `input_mint` into `output_mint`."""

    input_mint: PubkeyField
    output_mint: PubkeyField
    amount: Amount


class TokenParams(BaseModel):
    """Metadata of a token to be launched."""

    name: str = Field(..., min_length=1)
    ticker: str = Field(..., min_length=1)
    uri: str
    description: str


class CreateParams(_Params):
    """Launch a token and seed it with `amount` lamports."""

    twitter_id: U64
    amount: Amount
    token: TokenParams


class _Request(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId


class BuyRequest(_Request):
    method: Literal["buy"] = "buy"
    params: BuyParams


class SellRequest(_Request):
    method: Literal["sell"] = "sell"
    params: SellParams


class CreateRequest(_Request):
    method: Literal["create"] = "create"
    params: CreateParams


class GetAccountRequest(_Request):
    method: Literal["getAccount"] = "getAccount"
    params: GetAccountParams


class QuoteRequest(_Request):
    method: Literal["quote"] = "quote"
    params: QuoteParams


RpcRequest = Annotated[
    Union[BuyRequest, SellRequest, CreateRequest, GetAccountRequest, QuoteRequest],
    Field(discriminator="method"),
]

# method name -> request variant
REQUEST_TYPES: dict[str, type[_Request]] = {
    variant.model_fields["method"].default: variant
    for variant in get_args(get_args(RpcRequest)[0])
}


class RpcEnvelope(BaseModel):
    """Outer request shape, checked before the method is looked at."""

    jsonrpc: Literal["2.0"]
    id: RequestId
    method: str
    params: dict = Field(default_factory=dict)


class RpcResponse(BaseModel):
    """Response envelope. Exactly one of `result` and `error` is set."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int
    result: Optional[Any] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "RpcResponse":
        if (self.result is None) == (self.error is None):
            raise ValueError("exactly one of result and error must be set")
        return self

    @classmethod
    def success(cls, request_id: int, result: Any) -> "RpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: int, message: str) -> "RpcResponse":
        return cls(id=request_id, error=message)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        """Wire form; the absent member is omitted, not null."""
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error
        else:
            data["result"] = self.result
        return data
