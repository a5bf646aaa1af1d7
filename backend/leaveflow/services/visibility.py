# ruff: noqa: TC003
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import false
from sqlmodel import col

from leaveflow.models.enums import FINAL_APPROVER_ROLES, RoleName
from leaveflow.models.request import LeaveRequest

if TYPE_CHECKING:
    from sqlalchemy import Select

    from leaveflow.services.directory import OrgGraph


class ScopeKind(enum.StrEnum):
    """Which slice of the organization a viewer can see."""

    ALL = "ALL"
    BRANCH = "BRANCH"
    DEPARTMENT = "DEPARTMENT"
    DIRECT_REPORTS = "DIRECT_REPORTS"
    NONE = "NONE"


@dataclass(frozen=True)
class VisibilityScope:
    """Resolved visibility of one viewer, usable as a predicate or a query filter."""

    kind: ScopeKind
    employee_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)

    @property
    def is_unrestricted(self) -> bool:
        return self.kind is ScopeKind.ALL

    def allows(self, employee_id: uuid.UUID) -> bool:
        """Return True if requests owned by ``employee_id`` are visible."""
        return self.is_unrestricted or employee_id in self.employee_ids

    def apply(self, query: Select) -> Select:
        """Restrict a LeaveRequest query to what the viewer may see."""
        if self.is_unrestricted:
            return query
        if not self.employee_ids:
            return query.where(false())
        return query.where(col(LeaveRequest.employee_id).in_(list(self.employee_ids)))


NO_VISIBILITY = VisibilityScope(ScopeKind.NONE)


async def resolve_visibility(org: OrgGraph, viewer_id: uuid.UUID) -> VisibilityScope:
    """Resolve what a viewer may see from their roles and org position.

    Checked in fixed order, first match wins:

    1. System admin or HR manager: everything.
    2. Branch manager with a branch: employees of that branch.
    3. Department head with a department: employees of that department.
    4. Anyone else: their direct reports.

    A viewer holding a branch or department role whose required assignment is
    missing (and no other role applies) sees nothing. Viewers unknown to the
    directory see nothing.
    """
    if await org.get_employee(viewer_id) is None:
        return NO_VISIBILITY

    roles = await org.get_roles(viewer_id)
    if roles & FINAL_APPROVER_ROLES:
        return VisibilityScope(ScopeKind.ALL)

    scoped_role = False

    if RoleName.BRANCH_MANAGER in roles:
        scoped_role = True
        branch_id = await org.get_branch(viewer_id)
        if branch_id is not None:
            members = await org.list_branch_members(branch_id)
            return VisibilityScope(ScopeKind.BRANCH, frozenset(members))

    if RoleName.DEPARTMENT_HEAD in roles:
        scoped_role = True
        department_id = await org.get_department(viewer_id)
        if department_id is not None:
            members = await org.list_department_members(department_id)
            return VisibilityScope(ScopeKind.DEPARTMENT, frozenset(members))

    if scoped_role:
        return NO_VISIBILITY

    reports = await org.list_direct_reports(viewer_id)
    return VisibilityScope(ScopeKind.DIRECT_REPORTS, frozenset(reports))
