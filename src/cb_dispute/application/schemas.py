"""Pydantic schemas for cb_dispute API."""

from pydantic import BaseModel, Field

from src.cb_dispute.domain.models import Dispute


class RaiseDisputeRequest(BaseModel):
    booking_id: str
    reason: str = Field(..., min_length=5, max_length=2000)


class ResolveDisputeRequest(BaseModel):
    resolution: str = Field(..., min_length=1, max_length=2000)
    refund_amount: int = Field(0, ge=0, description="Paise returned to the seeker")
    admin_notes: str | None = Field(None, max_length=2000)


class CloseDisputeRequest(BaseModel):
    admin_notes: str | None = Field(None, max_length=2000)


class DisputeResponse(BaseModel):
    id: str
    booking_id: str
    raised_by: str
    against_user_id: str
    reason: str
    status: str
    resolution: str | None
    refund_amount: int
    admin_notes: str | None
    booking_status_before: str
    resolved_by: str | None
    resolved_at: str | None
    created_at: str | None

    @classmethod
    def from_dispute(cls, dispute: Dispute) -> "DisputeResponse":
        return cls(
            id=dispute.id,
            booking_id=dispute.booking_id,
            raised_by=dispute.raised_by,
            against_user_id=dispute.against_user_id,
            reason=dispute.reason,
            status=dispute.status.value,
            resolution=dispute.resolution,
            refund_amount=dispute.refund_amount,
            admin_notes=dispute.admin_notes,
            booking_status_before=dispute.booking_status_before.value,
            resolved_by=dispute.resolved_by,
            resolved_at=dispute.resolved_at.isoformat() if dispute.resolved_at else None,
            created_at=dispute.created_at.isoformat() if dispute.created_at else None,
        )


class DisputeOutcomeResponse(BaseModel):
    dispute: DisputeResponse
    booking_status: str
    escrow_status: str


class DisputeListResponse(BaseModel):
    items: list[DisputeResponse]
    next_cursor: str | None
    has_more: bool
