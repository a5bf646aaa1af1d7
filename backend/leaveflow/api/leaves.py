# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from leaveflow.api.deps import AuthDep, OrgDep, SinkDep
from leaveflow.db import SessionDep
from leaveflow.models.enums import ApprovalStatus, LeaveStatus
from leaveflow.schemas.request import (
    ActionPayload,
    CreateLeavePayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    LeaveStatsResponse,
    PendingCountResponse,
)
from leaveflow.services import leave as leave_service

leaves_router = APIRouter(prefix="/leaves", tags=["leaves"])


@leaves_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    payload: CreateLeavePayload,
    session: SessionDep,
    auth: AuthDep,
    org: OrgDep,
    sink: SinkDep,
) -> LeaveRequestResponse:
    """Submit a leave request for the calling employee."""
    return await leave_service.create_leave_request(session, auth.employee_id, payload, org=org, sink=sink)


@leaves_router.patch("/{request_id}/action", response_model=LeaveRequestResponse)
async def take_action(
    request_id: uuid.UUID,
    payload: ActionPayload,
    session: SessionDep,
    auth: AuthDep,
    org: OrgDep,
    sink: SinkDep,
) -> LeaveRequestResponse:
    """Approve or reject the active step of a request."""
    return await leave_service.take_action(
        session,
        request_id,
        auth.employee_id,
        ApprovalStatus(payload.status),
        payload.comments,
        org=org,
        sink=sink,
    )


@leaves_router.get("/my-requests", response_model=LeaveRequestListResponse)
async def find_my_requests(session: SessionDep, auth: AuthDep) -> LeaveRequestListResponse:
    """List the caller's own requests."""
    return await leave_service.find_for_employee(session, auth.employee_id)


@leaves_router.get("/pending-approval", response_model=LeaveRequestListResponse)
async def find_pending(session: SessionDep, auth: AuthDep) -> LeaveRequestListResponse:
    """List requests waiting on the caller's decision."""
    return await leave_service.find_pending_for_approver(session, auth.employee_id)


@leaves_router.get("/pending-approval/count", response_model=PendingCountResponse)
async def count_pending(session: SessionDep, auth: AuthDep) -> PendingCountResponse:
    """Count requests waiting on the caller's decision."""
    return PendingCountResponse(count=await leave_service.count_pending_for_approver(session, auth.employee_id))


@leaves_router.get("/team-history", response_model=LeaveRequestListResponse)
async def find_team_history(
    session: SessionDep,
    auth: AuthDep,
    org: OrgDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List every request the caller may see, in any status."""
    return await leave_service.find_visible_history(
        session, auth.employee_id, status_filter=status_filter, offset=offset, limit=limit, org=org
    )


@leaves_router.get("/on-leave", response_model=LeaveRequestListResponse)
async def find_on_leave(
    session: SessionDep,
    auth: AuthDep,
    org: OrgDep,
    on_date: date | None = Query(default=None, alias="date"),
) -> LeaveRequestListResponse:
    """List approved leave covering a date (default today) within the caller's scope."""
    return await leave_service.find_on_leave(session, auth.employee_id, on_date or date.today(), org=org)


@leaves_router.get("/stats", response_model=LeaveStatsResponse)
async def get_stats(session: SessionDep, auth: AuthDep, org: OrgDep) -> LeaveStatsResponse:
    """Leave counters within the caller's scope."""
    return await leave_service.get_stats(session, auth.employee_id, org=org)


@leaves_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    org: OrgDep,
) -> LeaveRequestResponse:
    """Get a single leave request the caller owns, approves or can see."""
    return await leave_service.get_leave_request(session, request_id, auth.employee_id, org=org)
