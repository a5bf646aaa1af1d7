# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from leaveflow.models.base import now_utc


class LeaveBalance(SQLModel, table=True):
    """Remaining leave days for one employee. Only the balance ledger writes it."""

    __tablename__ = "leave_balance"
    __table_args__ = (sa.CheckConstraint("balance_days >= 0", name="ck_leave_balance_non_negative"),)

    employee_id: uuid.UUID = Field(primary_key=True, sa_type=sa.Uuid)
    balance_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
