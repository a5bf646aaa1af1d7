# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import TimestampMixin, UUIDBase
from leaveflow.models.enums import ApprovalStatus, LeaveStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """An employee's leave request. The aggregate root of the approval workflow."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_employee_status", "employee_id", "status"),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_date_order"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type: str = Field(max_length=100)
    start_date: date
    end_date: date
    reason: str | None = None
    status: str = Field(
        default=LeaveStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    actioned_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})


class ApprovalStep(UUIDBase, table=True):
    """One approver in a request's chain. Position is the approval order."""

    __tablename__ = "leave_approval_step"
    __table_args__ = (
        sa.UniqueConstraint("request_id", "position", name="uq_approval_step_position"),
        sa.Index("ix_approval_step_approver_status", "approver_id", "status"),
    )

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    position: int
    approver_id: uuid.UUID
    # Snapshot taken when the chain is built; never re-resolved.
    approver_name: str = Field(max_length=255)
    status: str = Field(default=ApprovalStatus.PENDING, max_length=50, sa_column_kwargs={"server_default": "PENDING"})
    actioned_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    comments: str | None = None
