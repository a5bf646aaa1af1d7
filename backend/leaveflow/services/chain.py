# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from leaveflow.config import get_settings
from leaveflow.exceptions import ChainConfigurationError
from leaveflow.models.enums import FINAL_APPROVER_ROLES

if TYPE_CHECKING:
    from leaveflow.services.directory import EmployeeRef, OrgGraph

logger = logging.getLogger(__name__)


class ApproverRef(BaseModel):
    """An approver resolved while building a chain, with a name snapshot."""

    approver_id: uuid.UUID
    approver_name: str


def _overflow(
    policy: Literal["truncate", "error"],
    requester: EmployeeRef,
    message: str,
) -> None:
    if policy == "error":
        raise ChainConfigurationError(message, requester.id)
    logger.warning("Approval chain for employee %s truncated: %s", requester.id, message)


async def build_approval_chain(
    org: OrgGraph,
    requester: EmployeeRef,
    *,
    max_hops: int | None = None,
    overflow_policy: Literal["truncate", "error"] | None = None,
) -> list[ApproverRef]:
    """Walk the supervisor graph above the requester and return the approvers in order.

    The walk stops at the organizational top, at the first HR manager or system
    admin, or after ``max_hops`` supervisors. A supervisor that is the requester
    or already in the chain means the reporting lines are circular; that entry
    is never appended. Circular lines and hop exhaustion either truncate the
    chain (logged) or raise ``ChainConfigurationError``, per ``overflow_policy``.

    An empty result means the requester has no supervisor and the request is
    auto-approved.
    """
    settings = get_settings()
    hops = max_hops if max_hops is not None else settings.max_chain_hops
    policy = overflow_policy or settings.chain_overflow_policy

    chain: list[ApproverRef] = []
    seen: set[uuid.UUID] = set()
    current = requester

    for _ in range(hops):
        supervisor = await org.get_supervisor(current.id)
        if supervisor is None:
            return chain

        if supervisor.id == requester.id or supervisor.id in seen:
            _overflow(policy, requester, f"circular reporting line at {supervisor.id}")
            return chain

        chain.append(ApproverRef(approver_id=supervisor.id, approver_name=supervisor.full_name))
        seen.add(supervisor.id)

        roles = await org.get_roles(supervisor.id)
        if roles & FINAL_APPROVER_ROLES:
            return chain

        current = supervisor

    # Hop budget spent; only an issue if the hierarchy actually continues.
    if await org.get_supervisor(current.id) is not None:
        _overflow(policy, requester, f"reporting line deeper than {hops} levels")
    return chain
