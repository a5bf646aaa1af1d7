# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, status

from leaveflow.exceptions import AppError
from leaveflow.models.enums import FINAL_APPROVER_ROLES
from leaveflow.schemas.auth import AuthContext
from leaveflow.services.directory import OrgGraph, get_org_graph
from leaveflow.services.notification import NotificationSink, get_notification_sink

OrgDep = Annotated[OrgGraph, Depends(get_org_graph)]
SinkDep = Annotated[NotificationSink, Depends(get_notification_sink)]


async def get_auth_context(
    org: OrgDep,
    x_employee_id: uuid.UUID = Header(),
) -> AuthContext:
    """Extract dev auth context from request headers; the caller must be in the directory."""
    if await org.get_employee(x_employee_id) is None:
        raise AppError("Unknown employee", status_code=status.HTTP_401_UNAUTHORIZED)
    return AuthContext(employee_id=x_employee_id)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_hr_or_admin(
    auth: AuthDep,
    org: OrgDep,
) -> AuthContext:
    """Require the HR manager or system admin role."""
    roles = await org.get_roles(auth.employee_id)
    if not roles & FINAL_APPROVER_ROLES:
        raise AppError("HR or admin access required", status_code=status.HTTP_403_FORBIDDEN)
    return auth


HRAdminDep = Annotated[AuthContext, Depends(require_hr_or_admin)]
