from __future__ import annotations

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from logistics_hub.common.json_logger import JsonLogger, get_logger
from logistics_hub.config import Config, get_config
from logistics_hub.errors import AuthError, IntegrationNotConfigured, NotFoundError, VendorError
from logistics_hub.proofs.storage import ObjectExistsError

from . import dashboard, functions, payments

CONFLICT_MESSAGE = "Conflicts with an existing record"


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def _auth_error(request: Request, exc: AuthError) -> JSONResponse:
        body = {"error": str(exc)}
        if exc.redirect_to:
            body["redirect_to"] = exc.redirect_to
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(body, status_code=exc.status_code, headers=headers)

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(IntegrationNotConfigured)
    async def _not_configured(request: Request, exc: IntegrationNotConfigured) -> JSONResponse:
        request.app.state.logger.error(phase="api.error", message=str(exc), path=request.url.path)
        return JSONResponse({"error": str(exc)}, status_code=500)

    @app.exception_handler(VendorError)
    async def _vendor_error(request: Request, exc: VendorError) -> JSONResponse:
        request.app.state.logger.error(phase="api.error", message=str(exc), path=request.url.path)
        return JSONResponse({"error": str(exc)}, status_code=502)

    @app.exception_handler(ObjectExistsError)
    async def _object_exists(request: Request, exc: ObjectExistsError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=409)

    @app.exception_handler(IntegrityError)
    async def _conflict(request: Request, exc: IntegrityError) -> JSONResponse:
        request.app.state.logger.warn(
            phase="api.error", message="constraint violation", error=str(exc.orig), path=request.url.path
        )
        return JSONResponse({"error": CONFLICT_MESSAGE}, status_code=409)

    @app.exception_handler(ValueError)
    async def _bad_request(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=400)


def create_app(
    config: Config | None = None,
    *,
    logger: JsonLogger | None = None,
    vendor_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the HTTP service.

    ``vendor_transport`` replaces the network transport of every vendor
    client; tests pass an ``httpx.MockTransport``.
    """

    config = config or get_config()
    app = FastAPI(title="Logistics Hub")
    app.state.config = config
    app.state.logger = logger or get_logger()
    app.state.vendor_transport = vendor_transport

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_allow_origins),
        allow_credentials="*" not in config.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    _install_error_handlers(app)

    app.include_router(functions.router)
    app.include_router(dashboard.router)
    app.include_router(payments.router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok", "env": config.run_env}

    return app
