"""IdentityVerification boundary.

KYC itself is performed by an external provider; this module only reads the
status that provider last reported (stored on users.kyc_status) and turns it
into a precondition for publishing slots and creating bookings.
"""

from typing import Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.enums import KycStatus
from src.cb_common.errors import IdentityNotVerifiedError

_PASSING = frozenset({KycStatus.VERIFIED, KycStatus.SKIPPED})

_GET_KYC_SQL = text("SELECT kyc_status FROM users WHERE id = CAST(:user_id AS UUID)")

_SET_KYC_SQL = text("""
    UPDATE users SET kyc_status = :kyc_status, updated_at = NOW()
    WHERE id = CAST(:user_id AS UUID)
    RETURNING id
""")


class IdentityVerificationProtocol(Protocol):
    async def status(self, db: AsyncSession, user_id: str) -> KycStatus: ...

    async def require_verified(self, db: AsyncSession, user_id: str) -> None: ...


class UserKycVerification:
    async def status(self, db: AsyncSession, user_id: str) -> KycStatus:
        row = (await db.execute(_GET_KYC_SQL, {"user_id": user_id})).fetchone()
        if row is None:
            return KycStatus.PENDING
        return KycStatus(row.kyc_status)

    async def require_verified(self, db: AsyncSession, user_id: str) -> None:
        current = await self.status(db, user_id)
        if current not in _PASSING:
            raise IdentityNotVerifiedError(user_id, current.value)

    async def record_status(self, db: AsyncSession, user_id: str, status: KycStatus) -> bool:
        """Store the status reported by the KYC provider. Returns False for unknown users."""
        row = (
            await db.execute(_SET_KYC_SQL, {"user_id": user_id, "kyc_status": status.value})
        ).fetchone()
        return row is not None
