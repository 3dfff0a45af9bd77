"""JSON-RPC endpoint.

POST / carries one request envelope; OPTIONS on any path is a CORS
preflight and always succeeds.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from xlink.rpc.dispatcher import RpcDispatcher

router = APIRouter()


def get_dispatcher(request: Request) -> RpcDispatcher:
    """Dispatcher installed on the application."""
    return request.app.state.dispatcher


@router.post("/")
async def rpc(request: Request, dispatcher: RpcDispatcher = Depends(get_dispatcher)) -> JSONResponse:
    """Handle one JSON-RPC request."""
    body = await request.body()
    status_code, response = await dispatcher.handle(body)
    return JSONResponse(response.to_dict(), status_code=status_code)


@router.options("/{path:path}")
async def preflight(request: Request, dispatcher: RpcDispatcher = Depends(get_dispatcher)) -> JSONResponse:
    """Answer preflight requests regardless of body."""
    body = await request.body()
    return JSONResponse(dispatcher.preflight(body).to_dict(), status_code=200)
