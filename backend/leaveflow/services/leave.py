# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date
from typing import TYPE_CHECKING, NoReturn

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import col

from leaveflow.exceptions import (
    AlreadyTerminalError,
    AppError,
    InsufficientBalanceError,
    InvalidRangeError,
    NotAuthorizedError,
    NotFoundError,
    PersistenceFailure,
)
from leaveflow.models.base import now_utc
from leaveflow.models.enums import ApprovalStatus, LeaveStatus
from leaveflow.models.request import ApprovalStep, LeaveRequest
from leaveflow.schemas.request import (
    ApprovalStepResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    LeaveStatsResponse,
)
from leaveflow.services import balance as balance_service
from leaveflow.services.business_days import count_business_days
from leaveflow.services.chain import build_approval_chain
from leaveflow.services.directory import get_org_graph
from leaveflow.services.notification import (
    LeaveApproved,
    LeaveEvent,
    LeaveRejected,
    LeaveRequestedFromApprover,
    LeaveSubmitted,
    dispatch_events,
)
from leaveflow.services.visibility import resolve_visibility

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from leaveflow.schemas.request import CreateLeavePayload
    from leaveflow.services.directory import OrgGraph
    from leaveflow.services.notification import NotificationSink

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def first_pending_step(steps: Sequence[ApprovalStep]) -> ApprovalStep | None:
    """Return the active step: the earliest step, by position, still PENDING."""
    for step in sorted(steps, key=lambda s: s.position):
        if step.status == ApprovalStatus.PENDING:
            return step
    return None


def _build_step_response(step: ApprovalStep) -> ApprovalStepResponse:
    return ApprovalStepResponse(
        position=step.position,
        approver_id=step.approver_id,
        approver_name=step.approver_name,
        status=ApprovalStatus(step.status),
        actioned_at=step.actioned_at,
        comments=step.comments,
    )


def _build_request_response(request: LeaveRequest, steps: Sequence[ApprovalStep]) -> LeaveRequestResponse:
    """Map a request and its chain to the response schema."""
    status = LeaveStatus(request.status)
    active = first_pending_step(steps) if status == LeaveStatus.PENDING else None
    return LeaveRequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        leave_type=request.leave_type,
        start_date=request.start_date,
        end_date=request.end_date,
        business_days=count_business_days(request.start_date, request.end_date),
        reason=request.reason,
        status=status,
        approval_chain=[_build_step_response(s) for s in sorted(steps, key=lambda s: s.position)],
        active_approver_id=active.approver_id if active else None,
        created_at=request.created_at,
        actioned_at=request.actioned_at,
    )


async def _load_steps(
    session: AsyncSession,
    request_ids: Sequence[uuid.UUID],
) -> dict[uuid.UUID, list[ApprovalStep]]:
    """Fetch the chains of several requests, ordered by position."""
    if not request_ids:
        return {}
    result = await session.execute(
        select(ApprovalStep)
        .where(col(ApprovalStep.request_id).in_(list(request_ids)))
        .order_by(col(ApprovalStep.request_id), col(ApprovalStep.position))
        .execution_options(populate_existing=True)
    )
    chains: dict[uuid.UUID, list[ApprovalStep]] = defaultdict(list)
    for step in result.scalars().all():
        chains[step.request_id].append(step)
    return chains


async def _build_list_response(
    session: AsyncSession,
    requests: Sequence[LeaveRequest],
    total: int | None = None,
) -> LeaveRequestListResponse:
    chains = await _load_steps(session, [r.id for r in requests])
    return LeaveRequestListResponse(
        items=[_build_request_response(r, chains.get(r.id, [])) for r in requests],
        total=len(requests) if total is None else total,
    )


async def _get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request by ID. Raises NotFoundError if absent."""
    query = select(LeaveRequest).where(col(LeaveRequest.id) == request_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Leave request not found")
    return request


def _active_step_for(approver_id: uuid.UUID):  # noqa: ANN202
    """EXISTS clause matching requests whose active step belongs to the approver."""
    earlier = aliased(ApprovalStep)
    earlier_pending = (
        select(earlier.id)
        .where(
            earlier.request_id == ApprovalStep.request_id,
            earlier.status == ApprovalStatus.PENDING.value,
            earlier.position < ApprovalStep.position,
        )
        .correlate(ApprovalStep)
    )
    return (
        select(col(ApprovalStep.id))
        .where(
            col(ApprovalStep.request_id) == LeaveRequest.id,
            col(ApprovalStep.approver_id) == approver_id,
            col(ApprovalStep.status) == ApprovalStatus.PENDING.value,
            ~earlier_pending.exists(),
        )
        .correlate(LeaveRequest)
        .exists()
    )


async def _rollback_and_raise(session: AsyncSession, exc: Exception, operation: str) -> NoReturn:
    """Roll back the unit of work, mapping database errors to PersistenceFailure.

    Domain errors and failures of collaborators (the directory) are re-raised
    unchanged once nothing is left pending on the session.
    """
    await session.rollback()
    if isinstance(exc, SQLAlchemyError):
        logger.exception("%s rolled back after a persistence error", operation)
        raise PersistenceFailure() from exc
    if not isinstance(exc, AppError):
        logger.warning("%s rolled back: %r", operation, exc)
    raise exc


async def _requester_name(org: OrgGraph, employee_id: uuid.UUID) -> str:
    """Display name for a notification; falls back to the id if the directory fails."""
    try:
        requester = await org.get_employee(employee_id)
    except Exception:
        logger.exception("Directory lookup for %s failed; notifying without a name", employee_id)
        return str(employee_id)
    return requester.full_name if requester else str(employee_id)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def create_leave_request(
    session: AsyncSession,
    requester_id: uuid.UUID,
    payload: CreateLeavePayload,
    *,
    org: OrgGraph | None = None,
    sink: NotificationSink | None = None,
) -> LeaveRequestResponse:
    """Submit a leave request, reserving the balance immediately.

    Flow:
    1. Resolve the requester in the directory
    2. Size the range in business days (0 is an invalid range)
    3. Check the balance under a row lock
    4. Build the approval chain
    5. Persist the request (PENDING, or APPROVED when the chain is empty)
    6. Debit the balance and persist the chain
    7. Commit, then hand events to the notification sink
    """
    org = org or get_org_graph()

    requester = await org.get_employee(requester_id)
    if requester is None:
        raise NotFoundError(f"Employee {requester_id} not found")

    days = count_business_days(payload.start_date, payload.end_date)
    if days == 0:
        raise InvalidRangeError(
            "Leave request must include at least one business day (weekends are not counted)."
        )

    try:
        balance = await balance_service.get_balance_for_update(session, requester.id)
        if balance.balance_days < days:
            raise InsufficientBalanceError(requester.id, requested=days, available=balance.balance_days)

        chain = await build_approval_chain(org, requester)
        auto_approved = not chain
        now = now_utc()

        request = LeaveRequest(
            employee_id=requester.id,
            leave_type=payload.leave_type,
            start_date=payload.start_date,
            end_date=payload.end_date,
            reason=payload.reason,
            status=(LeaveStatus.APPROVED if auto_approved else LeaveStatus.PENDING).value,
            actioned_at=now if auto_approved else None,
        )
        session.add(request)
        await session.flush()

        await balance_service.debit(session, requester.id, days, request.id)

        steps = [
            ApprovalStep(
                request_id=request.id,
                position=position,
                approver_id=approver.approver_id,
                approver_name=approver.approver_name,
                status=ApprovalStatus.PENDING.value,
            )
            for position, approver in enumerate(chain)
        ]
        session.add_all(steps)
        await session.flush()
        await session.commit()
    except Exception as exc:
        await _rollback_and_raise(session, exc, "Leave submission")

    logger.info(
        "Leave request %s submitted by %s for %d business days (%s)",
        request.id,
        requester.id,
        days,
        "auto-approved" if auto_approved else f"{len(steps)} approver(s)",
    )

    events: list[LeaveEvent] = [
        LeaveSubmitted(request_id=request.id, recipient_id=requester.id, employee_id=requester.id, days=days)
    ]
    if auto_approved:
        events.append(
            LeaveApproved(request_id=request.id, recipient_id=requester.id, employee_id=requester.id, days=days)
        )
    else:
        first = steps[0]
        events.append(
            LeaveRequestedFromApprover(
                request_id=request.id,
                recipient_id=first.approver_id,
                approver_id=first.approver_id,
                employee_name=requester.full_name,
                days=days,
            )
        )
    await dispatch_events(events, sink)

    return _build_request_response(request, steps)


async def take_action(
    session: AsyncSession,
    request_id: uuid.UUID,
    approver_id: uuid.UUID,
    decision: ApprovalStatus,
    comments: str | None = None,
    *,
    org: OrgGraph | None = None,
    sink: NotificationSink | None = None,
) -> LeaveRequestResponse:
    """Record an approver's decision on the active step.

    Rejection resolves the request and restores the reserved days. Approval
    hands the request to the next approver, or resolves it when the chain is
    exhausted; the balance is not touched on approval.

    The request row is locked and claimed with a version check, so of two
    concurrent actions only the first commits. The second sees
    AlreadyTerminalError or NotAuthorizedError.
    """
    if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
        raise AppError("Decision must be APPROVED or REJECTED", status_code=400)

    org = org or get_org_graph()

    try:
        request = await _get_request_or_404(session, request_id, for_update=True)
        if LeaveStatus(request.status).is_terminal:
            raise AlreadyTerminalError(request.id, request.status)

        steps = (await _load_steps(session, [request.id])).get(request.id, [])
        active = first_pending_step(steps)
        if active is None:
            raise AlreadyTerminalError(request.id, request.status)
        if active.approver_id != approver_id:
            raise NotAuthorizedError()

        next_step = next((s for s in steps if s.position > active.position), None)
        days = count_business_days(request.start_date, request.end_date)
        now = now_utc()

        if decision == ApprovalStatus.REJECTED:
            new_status = LeaveStatus.REJECTED
        elif next_step is None:
            new_status = LeaveStatus.APPROVED
        else:
            new_status = LeaveStatus.PENDING

        values: dict[str, object] = {"version": request.version + 1}
        if new_status.is_terminal:
            values.update(status=new_status.value, actioned_at=now)

        claimed = await session.execute(
            update(LeaveRequest)
            .where(
                col(LeaveRequest.id) == request.id,
                col(LeaveRequest.version) == request.version,
                col(LeaveRequest.status) == LeaveStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:  # type: ignore[attr-defined]
            raise AlreadyTerminalError(request.id)

        active.status = decision.value
        active.actioned_at = now
        active.comments = comments

        if new_status == LeaveStatus.REJECTED:
            await balance_service.credit(session, request.employee_id, days, request.id)

        await session.flush()
        await session.commit()
    except Exception as exc:
        await _rollback_and_raise(session, exc, "Leave action")

    for key, value in values.items():
        set_committed_value(request, key, value)
    logger.info(
        "Leave request %s: step %d %s by %s, request now %s",
        request.id,
        active.position,
        decision.value,
        approver_id,
        new_status.value,
    )

    events: list[LeaveEvent] = []
    if new_status == LeaveStatus.REJECTED:
        events.append(
            LeaveRejected(
                request_id=request.id, recipient_id=request.employee_id, employee_id=request.employee_id, days=days
            )
        )
    elif new_status == LeaveStatus.APPROVED:
        events.append(
            LeaveApproved(
                request_id=request.id, recipient_id=request.employee_id, employee_id=request.employee_id, days=days
            )
        )
    elif next_step is not None:
        events.append(
            LeaveRequestedFromApprover(
                request_id=request.id,
                recipient_id=next_step.approver_id,
                approver_id=next_step.approver_id,
                employee_name=await _requester_name(org, request.employee_id),
                days=days,
            )
        )
    await dispatch_events(events, sink)

    return _build_request_response(request, steps)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_leave_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    viewer_id: uuid.UUID | None = None,
    *,
    org: OrgGraph | None = None,
) -> LeaveRequestResponse:
    """Get a single request with its approval chain.

    With ``viewer_id`` the request must belong to the viewer, list the viewer
    in its approval chain, or fall inside the viewer's visibility scope.
    """
    request = await _get_request_or_404(session, request_id)
    steps = (await _load_steps(session, [request.id])).get(request.id, [])

    if viewer_id is not None and viewer_id != request.employee_id:
        in_chain = any(s.approver_id == viewer_id for s in steps)
        if not in_chain:
            scope = await resolve_visibility(org or get_org_graph(), viewer_id)
            if not scope.allows(request.employee_id):
                raise NotAuthorizedError("You are not allowed to view this leave request.")

    return _build_request_response(request, steps)


async def find_for_employee(session: AsyncSession, employee_id: uuid.UUID) -> LeaveRequestListResponse:
    """All requests owned by an employee, newest first."""
    result = await session.execute(
        select(LeaveRequest)
        .where(col(LeaveRequest.employee_id) == employee_id)
        .order_by(col(LeaveRequest.created_at).desc())
    )
    return await _build_list_response(session, list(result.scalars().all()))


async def find_all_for_employee(
    session: AsyncSession,
    employee_id: uuid.UUID,
    *,
    org: OrgGraph | None = None,
) -> LeaveRequestListResponse:
    """All requests of a directory employee by start date, latest first."""
    org = org or get_org_graph()
    if await org.get_employee(employee_id) is None:
        raise NotFoundError(f"Employee with ID {employee_id} not found.")

    result = await session.execute(
        select(LeaveRequest)
        .where(col(LeaveRequest.employee_id) == employee_id)
        .order_by(col(LeaveRequest.start_date).desc())
    )
    return await _build_list_response(session, list(result.scalars().all()))


async def find_pending_for_approver(session: AsyncSession, approver_id: uuid.UUID) -> LeaveRequestListResponse:
    """Pending requests whose active step belongs to the approver."""
    result = await session.execute(
        select(LeaveRequest)
        .where(
            col(LeaveRequest.status) == LeaveStatus.PENDING.value,
            _active_step_for(approver_id),
        )
        .order_by(col(LeaveRequest.created_at).desc())
    )
    return await _build_list_response(session, list(result.scalars().all()))


async def count_pending_for_approver(session: AsyncSession, approver_id: uuid.UUID) -> int:
    """Number of pending requests waiting on the approver."""
    result = await session.execute(
        select(func.count())
        .select_from(LeaveRequest)
        .where(
            col(LeaveRequest.status) == LeaveStatus.PENDING.value,
            _active_step_for(approver_id),
        )
    )
    return result.scalar_one()


async def find_visible_history(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    *,
    status_filter: LeaveStatus | None = None,
    offset: int = 0,
    limit: int = 50,
    org: OrgGraph | None = None,
) -> LeaveRequestListResponse:
    """Every request (any status) the viewer may see, newest first."""
    scope = await resolve_visibility(org or get_org_graph(), viewer_id)

    query: Select = select(LeaveRequest)
    if status_filter is not None:
        query = query.where(col(LeaveRequest.status) == status_filter.value)
    query = scope.apply(query)

    count_result = await session.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar_one()

    result = await session.execute(
        query.order_by(col(LeaveRequest.created_at).desc()).offset(offset).limit(limit)
    )
    return await _build_list_response(session, list(result.scalars().all()), total)


async def find_on_leave(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    on_date: date,
    *,
    org: OrgGraph | None = None,
) -> LeaveRequestListResponse:
    """Approved requests covering ``on_date`` within the viewer's scope."""
    scope = await resolve_visibility(org or get_org_graph(), viewer_id)

    query: Select = select(LeaveRequest).where(
        col(LeaveRequest.status) == LeaveStatus.APPROVED.value,
        col(LeaveRequest.start_date) <= on_date,
        col(LeaveRequest.end_date) >= on_date,
    )
    result = await session.execute(scope.apply(query).order_by(col(LeaveRequest.start_date).desc()))
    return await _build_list_response(session, list(result.scalars().all()))


async def get_stats(
    session: AsyncSession,
    viewer_id: uuid.UUID,
    *,
    today: date | None = None,
    org: OrgGraph | None = None,
) -> LeaveStatsResponse:
    """Pending, resolved-this-month and upcoming counts within the viewer's scope."""
    scope = await resolve_visibility(org or get_org_graph(), viewer_id)
    now = now_utc()
    today = today or now.date()
    month_start = now.replace(year=today.year, month=today.month, day=1, hour=0, minute=0, second=0, microsecond=0)

    async def _count(*criteria: object) -> int:
        query: Select = select(LeaveRequest.id).where(*criteria)  # type: ignore[arg-type]
        result = await session.execute(select(func.count()).select_from(scope.apply(query).subquery()))
        return result.scalar_one()

    return LeaveStatsResponse(
        pending=await _count(col(LeaveRequest.status) == LeaveStatus.PENDING.value),
        approved_this_month=await _count(
            col(LeaveRequest.status) == LeaveStatus.APPROVED.value,
            col(LeaveRequest.actioned_at) >= month_start,
        ),
        rejected_this_month=await _count(
            col(LeaveRequest.status) == LeaveStatus.REJECTED.value,
            col(LeaveRequest.actioned_at) >= month_start,
        ),
        upcoming=await _count(
            col(LeaveRequest.status) == LeaveStatus.APPROVED.value,
            col(LeaveRequest.start_date) >= today,
        ),
    )
