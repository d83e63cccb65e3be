"""Thin client for the Mercado Pago Point integration API and OAuth endpoints."""
import logging
import httpx

from pos_terminals import config

logger = logging.getLogger(__name__)

POINT_API_PATH = "/point/integration-api"


def _headers(access_token: str):
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }


def error_body(response: httpx.Response) -> dict:
    """Best-effort JSON body of an error response; malformed bodies become {}."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def list_devices(access_token: str) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.get(
            f"{config.MERCADOPAGO_API_URL}{POINT_API_PATH}/devices",
            params={"offset": 0, "limit": 50},
            headers=_headers(access_token),
        )


async def create_payment_intent(
    device_id: str, access_token: str, amount: int, external_reference
) -> httpx.Response:
    payload = {
        "amount": amount,
        "additional_info": {
            "external_reference": external_reference,
            "print_on_terminal": True,
        },
    }
    async with httpx.AsyncClient() as client:
        return await client.post(
            f"{config.MERCADOPAGO_API_URL}{POINT_API_PATH}/devices/{device_id}/payment-intents",
            json=payload,
            headers=_headers(access_token),
        )


async def get_payment_intent(payment_intent_id: str, access_token: str) -> httpx.Response:
    async with httpx.AsyncClient() as client:
        return await client.get(
            f"{config.MERCADOPAGO_API_URL}{POINT_API_PATH}/payment-intents/{payment_intent_id}",
            headers=_headers(access_token),
        )


async def exchange_code(code: str, redirect_uri: str) -> httpx.Response:
    payload = {
        "client_id": config.MERCADOPAGO_CLIENT_ID,
        "client_secret": config.MERCADOPAGO_CLIENT_SECRET,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
    }
    async with httpx.AsyncClient() as client:
        return await client.post(f"{config.MERCADOPAGO_API_URL}/oauth/token", json=payload)


async def refresh_access_token(refresh_token: str) -> httpx.Response:
    payload = {
        "client_id": config.MERCADOPAGO_CLIENT_ID,
        "client_secret": config.MERCADOPAGO_CLIENT_SECRET,
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
    }
    async with httpx.AsyncClient() as client:
        return await client.post(f"{config.MERCADOPAGO_API_URL}/oauth/token", json=payload)
