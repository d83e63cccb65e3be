"""Mercado Pago OAuth: connect URL construction and code-exchange callback."""
import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from pos_terminals import config, mercadopago_service
from pos_terminals.auth import get_current_user
from pos_terminals.connections import MERCADOPAGO, expires_at_from, save_connection
from pos_terminals.database import session_scope
from pos_terminals.errors import NotConfigured, UnsupportedProvider
from pos_terminals.oauth_state import ExpiredState, InvalidState, decode_state, encode_state

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/oauth", tags=["oauth"])

PLATFORM_ID = "mp"
CALLBACK_PATH = "/api/oauth/mercadopago/callback"
SETTINGS_PATH = "/dashboard/settings/terminals"


def _require_oauth_provider(provider: str):
    if provider != MERCADOPAGO:
        raise UnsupportedProvider(f"OAuth is not available for provider '{provider}'")


def redirect_uri_for(request: Request) -> str:
    if config.MERCADOPAGO_REDIRECT_URI:
        return config.MERCADOPAGO_REDIRECT_URI
    if config.APP_URL:
        return f"{config.APP_URL.rstrip('/')}{CALLBACK_PATH}"
    return f"{str(request.base_url).rstrip('/')}{CALLBACK_PATH}"


def base_url_for(request: Request) -> str:
    if config.APP_URL:
        return config.APP_URL.rstrip("/")
    host = request.headers.get("x-forwarded-host")
    if host:
        protocol = request.headers.get("x-forwarded-proto", "https")
        return f"{protocol}://{host}"
    return str(request.base_url).rstrip("/")


def _settings_redirect(request: Request, **params) -> RedirectResponse:
    return RedirectResponse(
        f"{base_url_for(request)}{SETTINGS_PATH}?{urlencode(params)}", status_code=307
    )


@router.get("/{provider}/connect")
def connect(provider: str, request: Request, user_id: str = Depends(get_current_user)):
    _require_oauth_provider(provider)

    if not config.MERCADOPAGO_CLIENT_ID:
        raise NotConfigured("Mercado Pago is not configured")

    state = encode_state(user_id)
    params = {
        "client_id": config.MERCADOPAGO_CLIENT_ID,
        "response_type": "code",
        "platform_id": PLATFORM_ID,
        "redirect_uri": redirect_uri_for(request),
        "state": state,
    }
    logger.info(f"Mercado Pago OAuth initiated for user {user_id}")

    return {"authUrl": f"{config.MERCADOPAGO_AUTH_URL}?{urlencode(params)}", "state": state}


@router.get("/{provider}/callback")
async def callback(
    provider: str,
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    _require_oauth_provider(provider)

    if error:
        logger.error(f"Mercado Pago OAuth returned an error: {error}")
        return _settings_redirect(request, error=error)

    if not code or not state:
        return _settings_redirect(request, error="missing_params")

    try:
        state_data = decode_state(state)
    except ExpiredState:
        logger.warning("OAuth callback with expired state")
        return _settings_redirect(request, error="expired")
    except InvalidState as exc:
        logger.warning(f"OAuth callback with invalid state: {exc}")
        return _settings_redirect(request, error="invalid_state")

    if not config.MERCADOPAGO_CLIENT_ID or not config.MERCADOPAGO_CLIENT_SECRET:
        logger.error("OAuth callback received but Mercado Pago credentials are missing")
        return _settings_redirect(request, error="not_configured")

    try:
        response = await mercadopago_service.exchange_code(code, redirect_uri_for(request))
    except httpx.HTTPError as exc:
        logger.error(f"Mercado Pago token exchange request failed: {exc!r}")
        return _settings_redirect(request, error="token_exchange_failed", details="")

    if not response.is_success:
        body = mercadopago_service.error_body(response)
        logger.error(f"Mercado Pago token exchange failed: {response.status_code} {body}")
        return _settings_redirect(
            request,
            error="token_exchange_failed",
            details=body.get("message") or body.get("error") or "",
        )

    try:
        tokens = response.json()
    except ValueError:
        tokens = None
    if not isinstance(tokens, dict) or not tokens.get("access_token"):
        logger.error("Mercado Pago token response did not include an access token")
        return _settings_redirect(request, error="token_exchange_failed", details="")

    try:
        await run_in_threadpool(_store_connection, state_data["userId"], tokens)
    except SQLAlchemyError:
        logger.exception("Failed to save Mercado Pago connection")
        return _settings_redirect(request, error="save_failed")

    return _settings_redirect(request, connected=MERCADOPAGO)


def _store_connection(user_id: str, tokens: dict):
    mp_user_id = tokens.get("user_id")
    with session_scope() as db:
        save_connection(
            db,
            user_id,
            MERCADOPAGO,
            mp_user_id=str(mp_user_id) if mp_user_id is not None else None,
            access_token=tokens["access_token"],
            refresh_token=tokens.get("refresh_token"),
            public_key=tokens.get("public_key"),
            token_expires_at=expires_at_from(tokens.get("expires_in")),
            live_mode=bool(tokens.get("live_mode", False)),
            status="connected",
        )
