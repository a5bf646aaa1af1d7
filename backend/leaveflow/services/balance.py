from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from leaveflow.config import get_settings
from leaveflow.exceptions import InsufficientBalanceError, PersistenceFailure
from leaveflow.models.balance import LeaveBalance
from leaveflow.models.enums import LedgerEntryType, LedgerSourceType
from leaveflow.models.ledger import LeaveLedgerEntry
from leaveflow.schemas.balance import BalanceResponse, LedgerEntryResponse, LedgerListResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.schemas.balance import SetBalancesPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    return BalanceResponse(
        employee_id=balance.employee_id,
        balance_days=balance.balance_days,
        version=balance.version,
        updated_at=balance.updated_at,
    )


def _build_ledger_entry_response(entry: LeaveLedgerEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(
        id=entry.id,
        employee_id=entry.employee_id,
        entry_type=LedgerEntryType(entry.entry_type),
        amount_days=entry.amount_days,
        balance_after=entry.balance_after,
        source_type=LedgerSourceType(entry.source_type),
        source_id=entry.source_id,
        metadata_json=entry.metadata_json,
        created_at=entry.created_at,
    )


async def get_balance_for_update(session: AsyncSession, employee_id: uuid.UUID) -> LeaveBalance:
    """Return the employee's balance row under a FOR UPDATE lock.

    The row is created at the configured default balance the first time the
    ledger sees an employee.
    """
    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.employee_id) == employee_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()

    if balance is None:
        balance = LeaveBalance(
            employee_id=employee_id,
            balance_days=get_settings().default_leave_balance,
            version=1,
        )
        session.add(balance)
        await session.flush()

    return balance


async def _apply_delta(
    session: AsyncSession,
    employee_id: uuid.UUID,
    delta: int,
    *,
    require_available: int | None = None,
) -> int:
    """Atomically add ``delta`` to the balance and return the new value.

    With ``require_available`` the update only matches while the balance is at
    least that large; returns -1 when it does not match.
    """
    stmt = (
        update(LeaveBalance)
        .where(col(LeaveBalance.employee_id) == employee_id)
        .values(
            balance_days=col(LeaveBalance.balance_days) + delta,
            version=col(LeaveBalance.version) + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if require_available is not None:
        stmt = stmt.where(col(LeaveBalance.balance_days) >= require_available)

    result = await session.execute(stmt)
    if result.rowcount != 1:  # type: ignore[attr-defined]
        return -1

    refreshed = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.employee_id) == employee_id)
        .execution_options(populate_existing=True)
    )
    return refreshed.scalar_one().balance_days


# ---------------------------------------------------------------------------
# Write path: used inside the caller's transaction
# ---------------------------------------------------------------------------


async def debit(
    session: AsyncSession,
    employee_id: uuid.UUID,
    days: int,
    request_id: uuid.UUID,
) -> int:
    """Reserve ``days`` for a leave request. Does not commit.

    Raises InsufficientBalanceError when the balance is smaller than ``days``.
    Returns the balance after the debit.
    """
    balance = await get_balance_for_update(session, employee_id)
    available = balance.balance_days

    new_balance = await _apply_delta(session, employee_id, -days, require_available=days)
    if new_balance < 0:
        raise InsufficientBalanceError(employee_id, requested=days, available=available)

    session.add(
        LeaveLedgerEntry(
            employee_id=employee_id,
            entry_type=LedgerEntryType.DEBIT.value,
            amount_days=-days,
            balance_after=new_balance,
            source_type=LedgerSourceType.REQUEST.value,
            source_id=str(request_id),
        )
    )
    return new_balance


async def credit(
    session: AsyncSession,
    employee_id: uuid.UUID,
    days: int,
    request_id: uuid.UUID,
) -> int:
    """Restore ``days`` reserved by a rejected request. Does not commit.

    Returns the balance after the credit.
    """
    await get_balance_for_update(session, employee_id)
    new_balance = await _apply_delta(session, employee_id, days)

    session.add(
        LeaveLedgerEntry(
            employee_id=employee_id,
            entry_type=LedgerEntryType.CREDIT.value,
            amount_days=days,
            balance_after=new_balance,
            source_type=LedgerSourceType.REQUEST.value,
            source_id=str(request_id),
        )
    )
    return new_balance


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_balance(session: AsyncSession, employee_id: uuid.UUID) -> BalanceResponse:
    """Return the employee's current balance, opening it at the default if new."""
    result = await session.execute(select(LeaveBalance).where(col(LeaveBalance.employee_id) == employee_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        balance = await get_balance_for_update(session, employee_id)
        await session.commit()
    return _build_balance_response(balance)


async def get_ledger(
    session: AsyncSession,
    employee_id: uuid.UUID,
    offset: int = 0,
    limit: int = 50,
) -> LedgerListResponse:
    """Return paginated ledger entries for an employee, newest first."""
    base_filter = col(LeaveLedgerEntry.employee_id) == employee_id

    count_result = await session.execute(select(func.count()).select_from(LeaveLedgerEntry).where(base_filter))
    total = count_result.scalar_one()

    entries_result = await session.execute(
        select(LeaveLedgerEntry)
        .where(base_filter)
        .order_by(col(LeaveLedgerEntry.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    entries = list(entries_result.scalars().all())

    return LedgerListResponse(
        items=[_build_ledger_entry_response(e) for e in entries],
        total=total,
    )


# ---------------------------------------------------------------------------
# Write path: admin overwrite
# ---------------------------------------------------------------------------


async def set_balances(
    session: AsyncSession,
    actor_id: uuid.UUID,
    payload: SetBalancesPayload,
) -> list[BalanceResponse]:
    """Overwrite several balances in a single transaction.

    Each change is recorded as an ADJUSTMENT entry for the difference. Either
    every update commits or none does.
    """
    try:
        touched: list[uuid.UUID] = []
        for item in payload.updates:
            balance = await get_balance_for_update(session, item.employee_id)
            delta = item.leave_balance - balance.balance_days
            new_balance = await _apply_delta(session, item.employee_id, delta)

            entry_id = uuid.uuid4()
            metadata: dict[str, Any] = {"adjusted_by": str(actor_id), "previous_balance": new_balance - delta}
            if payload.reason:
                metadata["reason"] = payload.reason
            session.add(
                LeaveLedgerEntry(
                    id=entry_id,
                    employee_id=item.employee_id,
                    entry_type=LedgerEntryType.ADJUSTMENT.value,
                    amount_days=delta,
                    balance_after=new_balance,
                    source_type=LedgerSourceType.ADMIN.value,
                    source_id=str(entry_id),
                    metadata_json=metadata,
                )
            )
            touched.append(item.employee_id)

        await session.flush()
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Balance overwrite by %s rolled back", actor_id)
        raise PersistenceFailure("Could not update leave balances") from None

    result = await session.execute(select(LeaveBalance).where(col(LeaveBalance.employee_id).in_(touched)))
    by_id = {b.employee_id: b for b in result.scalars().all()}
    return [_build_balance_response(by_id[employee_id]) for employee_id in touched]
