from __future__ import annotations

import enum


class LeaveStatus(enum.StrEnum):
    """Lifecycle of a leave request. APPROVED and REJECTED are terminal."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not LeaveStatus.PENDING


class ApprovalStatus(enum.StrEnum):
    """State of a single approval step."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RoleName(enum.StrEnum):
    """Roles resolved from the organizational directory."""

    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    HR_MANAGER = "HR_MANAGER"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    EMPLOYEE = "EMPLOYEE"


# Holders of these roles end an approval chain and see every request.
FINAL_APPROVER_ROLES = frozenset({RoleName.HR_MANAGER, RoleName.SYSTEM_ADMIN})


class LedgerEntryType(enum.StrEnum):
    """Type of ledger entry affecting a leave balance."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"
    ADJUSTMENT = "ADJUSTMENT"


class LedgerSourceType(enum.StrEnum):
    """Origin of a ledger entry."""

    REQUEST = "REQUEST"
    ADMIN = "ADMIN"


class LeaveEventType(enum.StrEnum):
    """Events emitted to the notification boundary."""

    LEAVE_SUBMITTED = "leave.submitted"
    LEAVE_REQUESTED_FROM_APPROVER = "leave.requested_from_approver"
    LEAVE_APPROVED = "leave.approved"
    LEAVE_REJECTED = "leave.rejected"
