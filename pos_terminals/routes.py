import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from pos_terminals import config, mercadopago_service
from pos_terminals.auth import get_current_user
from pos_terminals.connections import (
    MERCADOPAGO,
    delete_connection,
    get_connection,
    is_expired,
    sanitize,
    select_device,
    update_tokens,
)
from pos_terminals.database import session_scope
from pos_terminals.errors import InvalidInput, NoActiveConnection
from pos_terminals.providers import get_provider

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/terminals", tags=["terminals"])


class DeviceSelection(BaseModel):
    deviceId: Optional[str] = None
    deviceName: Optional[str] = None


class PaymentIntentRequest(BaseModel):
    provider: Optional[str] = None
    deviceId: Optional[str] = None
    accessToken: Optional[str] = None
    amount: Optional[float] = Field(None, allow_inf_nan=False)
    externalReference: Optional[str] = None
    intentId: Optional[str] = None


class PaymentStatusRequest(BaseModel):
    provider: Optional[str] = None
    paymentIntentId: Optional[str] = None
    accessToken: Optional[str] = None


def _load_connection(user_id: str):
    with session_scope() as db:
        return get_connection(db, user_id, MERCADOPAGO)


def _store_tokens(user_id: str, token_data: dict):
    with session_scope() as db:
        connection = get_connection(db, user_id, MERCADOPAGO)
        if connection is None:
            return None
        return update_tokens(db, connection, token_data)


@router.get("/devices")
async def list_devices(user_id: str = Depends(get_current_user)):
    connection = await run_in_threadpool(_load_connection, user_id)
    if connection is None or not connection.access_token:
        raise NoActiveConnection()

    devices = await get_provider(MERCADOPAGO).list_devices(connection.access_token)
    return {"devices": devices, "count": len(devices)}


@router.post("/devices")
def save_selected_device(request: DeviceSelection, user_id: str = Depends(get_current_user)):
    if not request.deviceId:
        raise InvalidInput("deviceId is required")

    device_name = request.deviceName or f"Terminal {request.deviceId}"

    with session_scope() as db:
        updated = select_device(db, user_id, request.deviceId, device_name, MERCADOPAGO)

    if not updated:
        raise NoActiveConnection()

    logger.info(f"User {user_id} selected terminal {request.deviceId}")
    return {"success": True, "deviceId": request.deviceId, "deviceName": device_name}


@router.post("/payment-intent")
async def create_payment_intent(request: PaymentIntentRequest):
    if not request.provider or not request.deviceId or not request.accessToken or not request.amount:
        raise InvalidInput(status="error")

    provider = get_provider(request.provider)
    return await provider.create_intent(
        request.deviceId,
        request.accessToken,
        request.amount,
        request.externalReference or request.intentId,
    )


@router.post("/payment-status")
async def get_payment_status(request: PaymentStatusRequest):
    if not request.provider or not request.paymentIntentId or not request.accessToken:
        raise InvalidInput(status="error")

    provider = get_provider(request.provider)
    return await provider.get_status(request.paymentIntentId, request.accessToken)


@router.get("/connection")
async def connection_status(user_id: str = Depends(get_current_user)):
    connection = await run_in_threadpool(_load_connection, user_id)
    if connection is None:
        return {"connected": False}

    if is_expired(connection):
        token_data = await _refresh_tokens(connection)
        refreshed = None
        if token_data is not None:
            refreshed = await run_in_threadpool(_store_tokens, user_id, token_data)
        if refreshed is None:
            return {
                "connected": False,
                "expired": True,
                "message": "Your connection has expired. Please reconnect.",
            }
        connection = refreshed

    return {"connected": True, "connection": sanitize(connection)}


@router.delete("/connection")
def disconnect(user_id: str = Depends(get_current_user)):
    with session_scope() as db:
        deleted = delete_connection(db, user_id, MERCADOPAGO)

    logger.info(f"User {user_id} disconnected Mercado Pago ({deleted} row(s) removed)")
    return {"success": True}


async def _refresh_tokens(connection):
    if not connection.refresh_token or not config.MERCADOPAGO_CLIENT_ID or not config.MERCADOPAGO_CLIENT_SECRET:
        return None

    try:
        response = await mercadopago_service.refresh_access_token(connection.refresh_token)
        token_data = response.json() if response.is_success else None
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning(f"Token refresh failed for user {connection.user_id}: {exc!r}")
        return None

    if not isinstance(token_data, dict) or not token_data.get("access_token"):
        logger.warning(f"Token refresh rejected for user {connection.user_id}: {response.status_code}")
        return None
    return token_data
