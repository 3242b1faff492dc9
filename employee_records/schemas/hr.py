from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from employee_records.models.hr import CompensationType, SalaryType


class CamelModel(BaseModel):
    """Reads ORM attributes, speaks camelCase on the wire."""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class DepartmentOut(CamelModel):
    id: int
    name: str
    description: str | None = None


class DepartmentWithCount(DepartmentOut):
    employee_count: int = 0


class PositionOut(CamelModel):
    id: int
    title: str
    description: str | None = None
    department_id: int


class PositionWithDepartment(PositionOut):
    department: DepartmentOut
    employee_count: int = 0


class CompensationOut(CamelModel):
    id: int
    name: str
    amount: float
    description: str | None
    type: CompensationType
    is_percentage: bool
    is_active: bool


class SalaryOut(CamelModel):
    id: int
    employee_id: int
    basic_salary: float
    gross_salary: float
    net_salary: float
    currency: str
    salary_type: SalaryType
    effective_date: date
    end_date: datetime | None
    is_active: bool


class SalaryWithCompensations(SalaryOut):
    compensations: list[CompensationOut] = []


class EmployeeOut(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None
    hire_date: date
    department_id: int
    position_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class EmployeeWithOrg(EmployeeOut):
    department: DepartmentOut
    position: PositionOut


class EmployeeListItem(EmployeeWithOrg):
    active_salary: SalaryOut | None = None


class EmployeeDetail(EmployeeWithOrg):
    salaries: list[SalaryWithCompensations] = []


class SalarySnapshot(SalaryWithCompensations):
    employee: EmployeeWithOrg


class EmployeePage(CamelModel):
    data: list[EmployeeListItem] = []
    total_count: int = 0
    total_pages: int = 0
    current_page: int = 1
    page_size: int = 10
    error: str | None = None


class SalaryPage(CamelModel):
    data: list[SalarySnapshot] = []
    total_count: int = 0
    total_pages: int = 0
    current_page: int = 1
    page_size: int = 10
    error: str | None = None
