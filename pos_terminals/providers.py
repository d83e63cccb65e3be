"""Card-terminal payment providers, looked up by id through ``get_provider``."""
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import httpx

from pos_terminals import mercadopago_service
from pos_terminals.errors import TokenExpired, UnsupportedProvider, UpstreamError

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
APPROVED = "approved"
REJECTED = "rejected"
CANCELLED = "cancelled"
ERROR = "error"

_FINISHED_PAYMENT_STATES = {
    "approved": APPROVED,
    "rejected": REJECTED,
    "cancelled": CANCELLED,
}


def to_minor_units(amount) -> int:
    """Convert a decimal amount in major units to integer cents, rounding half up."""
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def map_intent_status(state: Optional[str], payment_state: Optional[str] = None) -> str:
    """Map Mercado Pago's intent ``state`` and ``payment.state`` to a local status."""
    if state == "FINISHED":
        return _FINISHED_PAYMENT_STATES.get((payment_state or "").lower(), PENDING)
    if state in ("PROCESSING", "OPEN"):
        return PROCESSING
    if state == "CANCELLED":
        return CANCELLED
    if state == "ERROR":
        return ERROR
    return PENDING


class PaymentProvider(ABC):
    name: str

    @abstractmethod
    async def create_intent(
        self, device_id: str, access_token: str, amount, external_reference=None
    ) -> dict:
        ...

    @abstractmethod
    async def get_status(self, payment_intent_id: str, access_token: str) -> dict:
        ...


async def _send(call, *args) -> httpx.Response:
    try:
        return await call(*args)
    except httpx.HTTPError as exc:
        logger.error(f"Mercado Pago request failed: {exc!r}")
        raise UpstreamError(
            "Payment provider unreachable", status_code=502, message=str(exc)
        )


def _json(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        logger.error(f"Mercado Pago returned a malformed body: {response.status_code}")
        raise UpstreamError(
            "Invalid response from payment provider",
            status_code=502,
            message="Malformed provider response",
        )
    return data


class MercadoPagoProvider(PaymentProvider):
    name = "mercadopago"

    async def list_devices(self, access_token: str) -> list:
        response = await _send(mercadopago_service.list_devices, access_token)

        if response.status_code == 401:
            logger.warning("Mercado Pago rejected the stored access token")
            raise TokenExpired()
        if not response.is_success:
            body = mercadopago_service.error_body(response)
            logger.error(f"Mercado Pago device listing failed: {response.status_code} {body}")
            raise UpstreamError(
                "Error fetching Mercado Pago devices",
                status_code=500,
                message=body.get("message") or response.reason_phrase,
            )

        data = _json(response)
        return [
            {
                "id": device.get("id"),
                "pos_id": device.get("pos_id"),
                "store_id": device.get("store_id"),
                "external_pos_id": device.get("external_pos_id"),
                "operating_mode": device.get("operating_mode"),
            }
            for device in data.get("devices") or []
        ]

    async def create_intent(
        self, device_id: str, access_token: str, amount, external_reference=None
    ) -> dict:
        minor_amount = to_minor_units(amount)
        response = await _send(
            mercadopago_service.create_payment_intent,
            device_id, access_token, minor_amount, external_reference,
        )

        if not response.is_success:
            body = mercadopago_service.error_body(response)
            logger.error(
                f"Mercado Pago payment intent failed for device {device_id}: "
                f"{response.status_code} {body}"
            )
            raise UpstreamError(
                "Error creating payment intent",
                status_code=response.status_code,
                message=body.get("message") or response.reason_phrase,
            )

        data = _json(response)
        logger.info(f"Payment intent {data.get('id')} pushed to device {device_id}")
        return {
            "status": PROCESSING,
            "paymentIntentId": data.get("id"),
            "deviceId": data.get("device_id"),
            "amount": data.get("amount"),
        }

    async def get_status(self, payment_intent_id: str, access_token: str) -> dict:
        response = await _send(
            mercadopago_service.get_payment_intent, payment_intent_id, access_token
        )

        if not response.is_success:
            body = mercadopago_service.error_body(response)
            logger.error(
                f"Mercado Pago status check failed for intent {payment_intent_id}: "
                f"{response.status_code} {body}"
            )
            raise UpstreamError(
                "Error checking payment status",
                status_code=response.status_code,
                message=body.get("message") or response.reason_phrase,
            )

        data = _json(response)
        payment = data.get("payment") or {}
        return {
            "status": map_intent_status(data.get("state"), payment.get("state")),
            "paymentId": payment.get("id"),
            "authorizationCode": payment.get("authorization_code"),
            "errorMessage": payment.get("status_detail"),
            "rawState": data.get("state"),
        }


class ClipProvider(PaymentProvider):
    """Placeholder for Clip terminals: no upstream calls are made."""

    name = "clip"

    async def create_intent(
        self, device_id: str, access_token: str, amount, external_reference=None
    ) -> dict:
        return {
            "status": PROCESSING,
            "paymentIntentId": f"clip_{int(time.time() * 1000)}",
            "deviceId": device_id,
            "message": "Payment sent to Clip terminal. Waiting for confirmation...",
        }

    async def get_status(self, payment_intent_id: str, access_token: str) -> dict:
        return {
            "status": PROCESSING,
            "message": "Checking status with Clip...",
        }


PROVIDERS = {
    provider.name: provider
    for provider in (MercadoPagoProvider(), ClipProvider())
}


def get_provider(name: str) -> PaymentProvider:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise UnsupportedProvider() from None
