# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from leaveflow.models.enums import LedgerEntryType, LedgerSourceType

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Remaining leave days for an employee."""

    employee_id: uuid.UUID
    balance_days: int
    version: int
    updated_at: datetime | None


# ---------------------------------------------------------------------------
# Ledger response schemas
# ---------------------------------------------------------------------------


class LedgerEntryResponse(BaseModel):
    """A single ledger entry."""

    id: uuid.UUID
    employee_id: uuid.UUID
    entry_type: LedgerEntryType
    amount_days: int
    balance_after: int
    source_type: LedgerSourceType
    source_id: str
    metadata_json: dict[str, Any] | None
    created_at: datetime


class LedgerListResponse(BaseModel):
    """Paginated ledger entries."""

    items: list[LedgerEntryResponse]
    total: int


# ---------------------------------------------------------------------------
# Admin balance overwrite
# ---------------------------------------------------------------------------


class BalanceUpdate(BaseModel):
    """New balance for one employee."""

    employee_id: uuid.UUID
    leave_balance: int = Field(ge=0)


class SetBalancesPayload(BaseModel):
    """Request body for overwriting several balances in one transaction."""

    updates: list[BalanceUpdate] = Field(min_length=1)
    reason: str | None = Field(default=None, max_length=1000)
