# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from leaveflow.models.enums import RoleName


class EmployeeRef(BaseModel):
    """Identity of an employee as seen by the leave engine."""

    id: uuid.UUID
    first_name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class DirectoryEmployee(EmployeeRef):
    """Directory record with reporting line, org placement and roles."""

    supervisor_id: uuid.UUID | None = None
    branch_id: uuid.UUID | None = None
    department_id: uuid.UUID | None = None
    roles: set[RoleName] = Field(default_factory=set)


@runtime_checkable
class OrgGraph(Protocol):
    """Read-only view of the organizational directory."""

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeRef | None:
        """Fetch an employee. Returns None if not found."""
        ...

    async def get_supervisor(self, employee_id: uuid.UUID) -> EmployeeRef | None:
        """Return the employee's direct supervisor, or None at the top of the org."""
        ...

    async def get_roles(self, employee_id: uuid.UUID) -> set[RoleName]:
        """Return the roles the employee holds."""
        ...

    async def get_branch(self, employee_id: uuid.UUID) -> uuid.UUID | None:
        """Return the employee's branch id, if assigned."""
        ...

    async def get_department(self, employee_id: uuid.UUID) -> uuid.UUID | None:
        """Return the employee's department id, if assigned."""
        ...

    async def list_direct_reports(self, supervisor_id: uuid.UUID) -> list[uuid.UUID]:
        """Ids of employees whose supervisor is the given employee."""
        ...

    async def list_branch_members(self, branch_id: uuid.UUID) -> list[uuid.UUID]:
        """Ids of employees assigned to the branch."""
        ...

    async def list_department_members(self, department_id: uuid.UUID) -> list[uuid.UUID]:
        """Ids of employees assigned to the department."""
        ...


class InMemoryOrgGraph:
    """In-memory directory used for development and tests."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, DirectoryEmployee] = {}

    def seed(self, employee: DirectoryEmployee) -> None:
        """Add or replace a directory record."""
        self._employees[employee.id] = employee

    def _ref(self, employee: DirectoryEmployee) -> EmployeeRef:
        return EmployeeRef(id=employee.id, first_name=employee.first_name, last_name=employee.last_name)

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeRef | None:
        employee = self._employees.get(employee_id)
        return self._ref(employee) if employee else None

    async def get_supervisor(self, employee_id: uuid.UUID) -> EmployeeRef | None:
        employee = self._employees.get(employee_id)
        if employee is None or employee.supervisor_id is None:
            return None
        supervisor = self._employees.get(employee.supervisor_id)
        return self._ref(supervisor) if supervisor else None

    async def get_roles(self, employee_id: uuid.UUID) -> set[RoleName]:
        employee = self._employees.get(employee_id)
        return set(employee.roles) if employee else set()

    async def get_branch(self, employee_id: uuid.UUID) -> uuid.UUID | None:
        employee = self._employees.get(employee_id)
        return employee.branch_id if employee else None

    async def get_department(self, employee_id: uuid.UUID) -> uuid.UUID | None:
        employee = self._employees.get(employee_id)
        return employee.department_id if employee else None

    async def list_direct_reports(self, supervisor_id: uuid.UUID) -> list[uuid.UUID]:
        return [e.id for e in self._employees.values() if e.supervisor_id == supervisor_id]

    async def list_branch_members(self, branch_id: uuid.UUID) -> list[uuid.UUID]:
        return [e.id for e in self._employees.values() if e.branch_id == branch_id]

    async def list_department_members(self, department_id: uuid.UUID) -> list[uuid.UUID]:
        return [e.id for e in self._employees.values() if e.department_id == department_id]


_org_graph: OrgGraph = InMemoryOrgGraph()


def get_org_graph() -> OrgGraph:
    """FastAPI dependency for the organizational directory."""
    return _org_graph


def set_org_graph(graph: OrgGraph) -> None:
    """Override the directory (for testing or production wiring)."""
    global _org_graph
    _org_graph = graph
