"""NotificationEmitter — fire-and-forget notification intents.

The core never delivers notifications. It appends an intent row to the
`notifications` outbox table for an external deliverer to pick up. Each
insert runs in its own SAVEPOINT so a failed enqueue rolls back only the
savepoint, never the lifecycle transition that triggered it.
"""

import json
import logging
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.enums import NotificationKind
from src.cb_common.id_generator import generate_id

logger = logging.getLogger(__name__)

_INSERT_NOTIFICATION_SQL = text("""
    INSERT INTO notifications (id, user_id, kind, payload)
    VALUES (:id, :user_id, :kind, CAST(:payload AS JSONB))
""")


class NotificationEmitterProtocol(Protocol):
    async def enqueue(
        self,
        db: AsyncSession,
        user_id: str,
        kind: NotificationKind,
        payload: dict[str, Any],
    ) -> None: ...


class OutboxNotificationEmitter:
    """Writes notification intents to the outbox inside the caller's transaction."""

    async def enqueue(
        self,
        db: AsyncSession,
        user_id: str,
        kind: NotificationKind,
        payload: dict[str, Any],
    ) -> None:
        try:
            async with db.begin_nested():
                await db.execute(
                    _INSERT_NOTIFICATION_SQL,
                    {
                        "id": generate_id("nt_"),
                        "user_id": user_id,
                        "kind": kind.value,
                        "payload": json.dumps(payload, default=str),
                    },
                )
        except Exception:
            # Delivery is the collaborator's concern; a lost intent must not undo the transition.
            logger.exception("Failed to enqueue %s notification for user %s", kind.value, user_id)
