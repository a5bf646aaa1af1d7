# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leaveflow.models.base import UUIDBase, now_utc


class LeaveLedgerEntry(UUIDBase, table=True):
    """Append-only record of every change to a leave balance."""

    __tablename__ = "leave_ledger_entry"
    __table_args__ = (
        sa.Index("ix_leave_ledger_employee_created", "employee_id", "created_at"),
        # A request is debited at most once and credited at most once.
        sa.UniqueConstraint("source_type", "source_id", "entry_type", name="uq_leave_ledger_source"),
    )

    employee_id: uuid.UUID = Field(index=True)
    entry_type: str = Field(max_length=50)
    amount_days: int
    balance_after: int
    source_type: str = Field(max_length=50)
    source_id: str = Field(max_length=255)
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
