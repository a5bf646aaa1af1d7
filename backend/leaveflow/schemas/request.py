# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal, Self

from pydantic import BaseModel, Field, model_validator

from leaveflow.models.enums import ApprovalStatus, LeaveStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateLeavePayload(BaseModel):
    """Request body for submitting a leave request."""

    leave_type: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class ActionPayload(BaseModel):
    """Request body for an approver's decision on the active step."""

    status: Literal["APPROVED", "REJECTED"]
    comments: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApprovalStepResponse(BaseModel):
    """One step of an approval chain."""

    position: int
    approver_id: uuid.UUID
    approver_name: str
    status: ApprovalStatus
    actioned_at: datetime | None
    comments: str | None


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: str
    start_date: date
    end_date: date
    business_days: int
    reason: str | None
    status: LeaveStatus
    approval_chain: list[ApprovalStepResponse]
    active_approver_id: uuid.UUID | None
    created_at: datetime
    actioned_at: datetime | None


class LeaveRequestListResponse(BaseModel):
    """List of leave requests with the total match count."""

    items: list[LeaveRequestResponse]
    total: int


class PendingCountResponse(BaseModel):
    """Number of requests waiting on an approver."""

    count: int


class LeaveStatsResponse(BaseModel):
    """Leave counters scoped to what the viewer may see."""

    pending: int
    approved_this_month: int
    rejected_this_month: int
    upcoming: int
