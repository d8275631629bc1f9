"""Unit tests for the Cashfree order client using httpx.MockTransport."""

import json

import httpx
import pytest

from src.cb_booking.infrastructure.payment_gateway import CashfreePaymentGateway
from src.cb_common.errors import PaymentGatewayError


async def test_creates_order_in_rupees() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        seen["version"] = request.headers["x-api-version"]
        return httpx.Response(
            200, json={"order_id": "order_bk_1", "payment_session_id": "sess_abc"}
        )

    gateway = CashfreePaymentGateway(
        base_url="https://pg.test/", transport=httpx.MockTransport(handler)
    )
    intent = await gateway.create_intent(107000, "bk_1", "seek-1")

    assert intent.intent_id == "order_bk_1"
    assert intent.client_session == "sess_abc"
    assert seen["url"] == "https://pg.test/orders"
    assert seen["body"]["order_amount"] == 1070.0
    assert seen["body"]["order_currency"] == "INR"
    assert seen["body"]["customer_details"]["customer_id"] == "seek_1"
    assert seen["version"]


async def test_provider_rejection_raises_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "order_amount invalid"})

    gateway = CashfreePaymentGateway(transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentGatewayError) as exc:
        await gateway.create_intent(100, "bk_1", "seek-1")
    assert "order_amount invalid" in exc.value.message
    assert exc.value.http_status == 502


async def test_non_json_error_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    gateway = CashfreePaymentGateway(transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentGatewayError) as exc:
        await gateway.create_intent(100, "bk_1", "seek-1")
    assert "upstream down" in exc.value.message


async def test_network_error_raises_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    gateway = CashfreePaymentGateway(transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentGatewayError):
        await gateway.create_intent(100, "bk_1", "seek-1")


async def test_verify_reads_order_back_in_paise() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["client"] = request.headers["x-client-id"]
        return httpx.Response(
            200,
            json={"order_id": "order_bk_1", "order_status": "PAID", "order_amount": 1070.0},
        )

    gateway = CashfreePaymentGateway(
        base_url="https://pg.test", transport=httpx.MockTransport(handler)
    )
    result = await gateway.verify_intent("order_bk_1")

    assert seen["method"] == "GET"
    assert seen["url"] == "https://pg.test/orders/order_bk_1"
    assert "client" in seen
    assert result.is_paid
    assert result.amount == 107000


async def test_verify_active_order_is_not_paid() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"order_id": "order_bk_1", "order_status": "ACTIVE", "order_amount": 10.01},
        )

    gateway = CashfreePaymentGateway(transport=httpx.MockTransport(handler))
    result = await gateway.verify_intent("order_bk_1")

    assert not result.is_paid
    assert result.status == "ACTIVE"
    assert result.amount == 1001


async def test_verify_unknown_order_raises_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "order not found"})

    gateway = CashfreePaymentGateway(transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentGatewayError) as exc:
        await gateway.verify_intent("order_missing")
    assert "order not found" in exc.value.message
