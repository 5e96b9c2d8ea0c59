"""
HTTP surface for fetchgate.

Exposes the gateway operations as JSON endpoints:

    POST /tools/execute-http     body: {url, method, headers?, body?, queryParams?}
    GET  /tools/list-policies
    POST /tools/reload-policies
    GET  /healthz

When an auth token is configured, every /tools/* call must carry
``Authorization: Bearer <token>``. The gateway itself never sees caller
identity.
"""

import hmac

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from fetchgate import __version__
from fetchgate.config import GatewaySettings
from fetchgate.errors import AuthenticationError
from fetchgate.gateway import Gateway
from fetchgate.logging_config import get_logger, setup_logging
from fetchgate.schema import ExecuteHttpParams

logger = get_logger(__name__)


def check_bearer(authorization: str | None, token: str | None) -> None:
    """
    Verify an Authorization header against the configured token.

    No configured token means every caller is accepted.

    Raises:
        AuthenticationError: If the header is missing, malformed or wrong
    """
    if not token:
        return

    if not authorization:
        raise AuthenticationError(message="Authorization header is required")

    scheme, _, provided = authorization.partition(" ")
    if scheme != "Bearer" or not provided:
        raise AuthenticationError(message="Invalid authorization format. Use: Bearer <token>")

    if not hmac.compare_digest(provided.encode(), token.encode()):
        raise AuthenticationError(message="Invalid token")


def require_bearer(request: Request) -> None:
    """FastAPI dependency enforcing the bearer check."""
    settings: GatewaySettings = request.app.state.settings
    try:
        check_bearer(request.headers.get("authorization"), settings.auth_token)
    except AuthenticationError as e:
        logger.warning("authentication_failure", reason=e.message, path=request.url.path)
        raise HTTPException(
            status_code=401,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


router = APIRouter(prefix="/tools", dependencies=[Depends(require_bearer)])


@router.post("/execute-http")
async def execute_http(
    params: ExecuteHttpParams,
    gateway: Gateway = Depends(get_gateway),
) -> JSONResponse:
    result = await gateway.execute_http(params)
    return JSONResponse(result.to_wire())


@router.get("/list-policies")
async def list_policies(gateway: Gateway = Depends(get_gateway)) -> JSONResponse:
    return JSONResponse(gateway.list_policies().to_wire())


@router.post("/reload-policies")
async def reload_policies(gateway: Gateway = Depends(get_gateway)) -> JSONResponse:
    listing = await gateway.reload_policies()
    return JSONResponse(listing.to_wire())


def create_app(settings: GatewaySettings, gateway: Gateway | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Process settings
        gateway: Gateway to serve; by default one is created over
            ``settings.config_dir`` and loaded immediately

    Returns:
        The configured application
    """
    if gateway is None:
        gateway = Gateway.from_directory(settings.config_dir, timeout=settings.request_timeout)

    app = FastAPI(title="fetchgate", version=__version__)
    app.state.settings = settings
    app.state.gateway = gateway
    app.include_router(router)

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"ok": True, "policies": len(gateway.store.current())}

    return app


def serve(settings: GatewaySettings) -> None:
    """Configure logging and run the server until interrupted."""
    setup_logging(settings.log_level, json_format=settings.log_json)
    app = create_app(settings)
    logger.info(
        "server_starting",
        host=settings.host,
        port=settings.port,
        config_dir=str(settings.config_dir),
        auth_required=bool(settings.auth_token),
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
