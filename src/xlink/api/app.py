"""FastAPI application factory."""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException

from xlink import __version__
from xlink.config import Settings, get_settings
from xlink.rpc.contracts import SENTINEL_ID, RpcResponse
from xlink.rpc.dispatcher import RpcDispatcher

logger = logging.getLogger(__name__)


class RpcCORSMiddleware(CORSMiddleware):
    """CORS middleware whose preflight answer is a JSON-RPC success envelope.

    Starlette answers preflights with plain text, or 400 for a method or
    header it does not allow. The CORS headers are kept, the body replaced
    and the status is always 200.
    """

    def __init__(self, app, dispatcher: RpcDispatcher, **kwargs):
        super().__init__(app, **kwargs)
        self.dispatcher = dispatcher

    def preflight_response(self, request_headers: Headers) -> JSONResponse:
        response = super().preflight_response(request_headers=request_headers)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key.startswith("access-control-") or key == "vary"
        }
        return JSONResponse(self.dispatcher.preflight().to_dict(), status_code=200, headers=headers)


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown paths and methods get an error envelope instead of HTML/JSON detail."""
    logger.debug(f"No route for {request.method} {request.url.path} ({exc.status_code})")
    return JSONResponse(RpcResponse.failure(SENTINEL_ID, "not found").to_dict(), status_code=404)


def create_app(dispatcher: RpcDispatcher, settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        dispatcher: Handles decoded JSON-RPC requests
        settings: Settings to use instead of the environment ones
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="x-link gateway",
        description="Custodial Solana swap gateway",
        version=__version__,
        debug=settings.debug,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.dispatcher = dispatcher

    # CORS middleware; preflights get an envelope too
    app.add_middleware(
        RpcCORSMiddleware,
        dispatcher=dispatcher,
        allow_origins=settings.cors_origin_list,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, not_found_handler)

    from xlink.api.routes import rpc

    app.include_router(rpc.router, tags=["RPC"])

    return app
