from sqlmodel import SQLModel

from leaveflow.models.balance import LeaveBalance
from leaveflow.models.base import TimestampMixin, UUIDBase
from leaveflow.models.enums import (
    ApprovalStatus,
    LeaveEventType,
    LeaveStatus,
    LedgerEntryType,
    LedgerSourceType,
    RoleName,
)
from leaveflow.models.ledger import LeaveLedgerEntry
from leaveflow.models.request import ApprovalStep, LeaveRequest

__all__ = [
    "ApprovalStatus",
    "ApprovalStep",
    "LeaveBalance",
    "LeaveEventType",
    "LeaveLedgerEntry",
    "LeaveRequest",
    "LeaveStatus",
    "LedgerEntryType",
    "LedgerSourceType",
    "RoleName",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
]
