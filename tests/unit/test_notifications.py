"""Unit tests for the notification outbox emitter."""

import json
from unittest.mock import AsyncMock, MagicMock

from src.cb_common.enums import NotificationKind
from src.cb_common.notifications import OutboxNotificationEmitter


def _db() -> MagicMock:
    db = MagicMock()
    nested = MagicMock()
    nested.__aenter__ = AsyncMock(return_value=None)
    nested.__aexit__ = AsyncMock(return_value=False)
    db.begin_nested.return_value = nested
    db.execute = AsyncMock()
    return db


async def test_writes_intent_inside_savepoint() -> None:
    db = _db()
    await OutboxNotificationEmitter().enqueue(
        db, "comp-1", NotificationKind.BOOKING_REQUEST, {"booking_id": "bk_1"}
    )

    db.begin_nested.assert_called_once()
    params = db.execute.await_args.args[1]
    assert params["user_id"] == "comp-1"
    assert params["kind"] == "booking_request"
    assert json.loads(params["payload"]) == {"booking_id": "bk_1"}
    assert params["id"].startswith("nt_")


async def test_failed_insert_does_not_propagate() -> None:
    db = _db()
    db.execute.side_effect = RuntimeError("outbox table missing")

    await OutboxNotificationEmitter().enqueue(
        db, "seek-1", NotificationKind.PAYMENT_FAILED, {"booking_id": "bk_1"}
    )
