"""Unit tests for the payment-callback authentication dependency."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException

from config.settings import settings
from src.cb_gateway.auth import dependencies
from src.cb_gateway.auth.dependencies import get_payment_caller


async def test_gateway_secret_authenticates_as_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "PAYMENT_CALLBACK_TOKEN", "s3cret")
    assert await get_payment_caller(token=None, gateway_token="s3cret", db=AsyncMock()) is None


async def test_wrong_gateway_secret_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "PAYMENT_CALLBACK_TOKEN", "s3cret")
    with pytest.raises(HTTPException) as exc:
        await get_payment_caller(token=None, gateway_token="guess", db=AsyncMock())
    assert exc.value.status_code == 401


async def test_gateway_path_disabled_without_configured_secret(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(settings, "PAYMENT_CALLBACK_TOKEN", "")
    with pytest.raises(HTTPException):
        await get_payment_caller(token=None, gateway_token="", db=AsyncMock())


async def test_anonymous_caller_rejected() -> None:
    with pytest.raises(HTTPException) as exc:
        await get_payment_caller(token=None, gateway_token=None, db=AsyncMock())
    assert exc.value.status_code == 401


async def test_bearer_token_resolves_user() -> None:
    user = object()
    db = AsyncMock()
    with patch.object(dependencies, "get_current_user", AsyncMock(return_value=user)) as current:
        assert await get_payment_caller(token="jwt", gateway_token=None, db=db) is user
    current.assert_awaited_once_with("jwt", db)
