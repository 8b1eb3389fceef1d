from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Depends, Header, Request

from logistics_hub.auth.roles import fetch_user_role, resolve_route_access
from logistics_hub.auth.tokens import AuthenticatedUser, bearer_token, verify_access_token
from logistics_hub.common.json_logger import JsonLogger
from logistics_hub.config import Config
from logistics_hub.errors import AuthError
from logistics_hub.integrations.lalamove import CourierClient
from logistics_hub.integrations.paymongo import PaymentGatewayClient


def get_app_config(request: Request) -> Config:
    return request.app.state.config


def get_request_logger(request: Request) -> JsonLogger:
    return request.app.state.logger


def payment_client(request: Request) -> PaymentGatewayClient:
    return PaymentGatewayClient.from_config(
        request.app.state.config,
        transport=request.app.state.vendor_transport,
        logger=request.app.state.logger,
    )


def courier_client(request: Request) -> CourierClient:
    return CourierClient.from_config(
        request.app.state.config,
        transport=request.app.state.vendor_transport,
        logger=request.app.state.logger,
    )


async def current_user(
    authorization: str | None = Header(default=None),
    config: Config = Depends(get_app_config),
) -> AuthenticatedUser:
    return verify_access_token(bearer_token(authorization), config.supabase_jwt_secret)


def require_role(required_role: str | None) -> Callable[..., Awaitable[AuthenticatedUser]]:
    async def _dependency(
        user: AuthenticatedUser = Depends(current_user),
        config: Config = Depends(get_app_config),
    ) -> AuthenticatedUser:
        role = await fetch_user_role(config.database_url, user.id)
        access = resolve_route_access(role, required_role)
        if not access.allowed:
            raise AuthError("Insufficient role", status_code=403, redirect_to=access.redirect_to)
        return user

    return _dependency
