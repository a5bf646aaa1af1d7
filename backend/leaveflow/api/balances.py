# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from leaveflow.api.deps import AuthDep, HRAdminDep, OrgDep
from leaveflow.db import SessionDep
from leaveflow.exceptions import NotFoundError
from leaveflow.schemas.balance import BalanceResponse, LedgerListResponse, SetBalancesPayload
from leaveflow.services import balance as balance_service

employee_balance_router = APIRouter(prefix="/employees/{employee_id}", tags=["balances"])

balances_router = APIRouter(prefix="/leave-balances", tags=["balances"])


@employee_balance_router.get("/leave-balance", response_model=BalanceResponse)
async def get_employee_balance(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    org: OrgDep,
) -> BalanceResponse:
    """Get the remaining leave days for an employee."""
    if await org.get_employee(employee_id) is None:
        raise NotFoundError(f"Employee with ID {employee_id} not found.")
    return await balance_service.get_balance(session, employee_id)


@employee_balance_router.get("/leave-ledger", response_model=LedgerListResponse)
async def get_employee_ledger(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerListResponse:
    """Get paginated ledger entries for an employee."""
    return await balance_service.get_ledger(session, employee_id, offset, limit)


@balances_router.put("", response_model=list[BalanceResponse])
async def set_balances(
    payload: SetBalancesPayload,
    session: SessionDep,
    auth: HRAdminDep,
) -> list[BalanceResponse]:
    """Overwrite balances for several employees (HR or admin only)."""
    return await balance_service.set_balances(session, auth.employee_id, payload)
