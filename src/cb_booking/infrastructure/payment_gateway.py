"""Cashfree Orders API client implementing PaymentIntentGatewayProtocol.

Orders are created when a booking is placed and fetched again when a payment
confirmation arrives; the provider's order status and amount are the only
evidence the booking service accepts that money was captured.
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.cb_booking.domain.ports import PaymentIntent, PaymentVerification
from src.cb_common.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


class CashfreePaymentGateway:
    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.CASHFREE_BASE_URL).rstrip("/")
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-client-id": settings.CASHFREE_CLIENT_ID,
            "x-client-secret": settings.CASHFREE_CLIENT_SECRET,
            "x-api-version": settings.CASHFREE_API_VERSION,
        }

    async def _call(
        self, method: str, path: str, ref: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=settings.CASHFREE_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                response = await client.request(
                    method, f"{self._base_url}{path}", json=payload, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            logger.error("Cashfree unreachable for %s: %s", ref, exc)
            raise PaymentGatewayError(str(exc)) from exc

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            logger.error(
                "Cashfree rejected %s %s for %s: status=%s detail=%s",
                method, path, ref, response.status_code, detail,
            )
            raise PaymentGatewayError(detail or f"HTTP {response.status_code}")
        return response.json()

    async def create_intent(
        self, amount: int, booking_ref: str, customer_id: str
    ) -> PaymentIntent:
        payload = {
            "order_id": f"order_{booking_ref}",
            # Cashfree takes rupees; paise stay integral everywhere else
            "order_amount": amount / 100,
            "order_currency": "INR",
            "customer_details": {
                "customer_id": customer_id.replace("-", "_")[:50],
                "customer_phone": "9999999999",
            },
            "order_note": f"Booking payment for {booking_ref}",
        }
        data = await self._call("POST", "/orders", booking_ref, payload)
        return PaymentIntent(
            intent_id=data["order_id"],
            client_session=data.get("payment_session_id", ""),
        )

    async def verify_intent(self, intent_id: str) -> PaymentVerification:
        data = await self._call("GET", f"/orders/{intent_id}", intent_id)
        try:
            amount = round(float(data.get("order_amount", 0)) * 100)
        except (TypeError, ValueError) as exc:
            raise PaymentGatewayError(f"unreadable order_amount for {intent_id}") from exc
        return PaymentVerification(
            intent_id=data.get("order_id", intent_id),
            status=str(data.get("order_status", "")),
            amount=amount,
        )
