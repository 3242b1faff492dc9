"""
Request bodies and mutation results.

Request models carry the form rules (name lengths, positive amounts, ...);
services assume they already hold.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import Field, field_validator

from employee_records.models.hr import CompensationType, SalaryType
from employee_records.schemas.hr import (
    CamelModel,
    CompensationOut,
    EmployeeWithOrg,
    SalaryOut,
    SalaryWithCompensations,
)

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class FilterCondition(CamelModel):
    attribute: str
    operation: str
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def value_as_text(cls, value: Any) -> Any:
        # Table filters may send 100 or true unquoted.
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


class SalaryIn(CamelModel):
    basic_salary: Decimal = Field(ge=1)
    gross_salary: Decimal = Field(ge=1)
    net_salary: Decimal = Field(ge=1)
    currency: str = Field(min_length=1, max_length=3)
    salary_type: SalaryType
    effective_date: date


class EmployeeForm(CamelModel):
    first_name: str = Field(min_length=2)
    last_name: str = Field(min_length=2)
    email: str = Field(pattern=_EMAIL_PATTERN)
    phone: str | None = None
    hire_date: date
    department_id: int
    position_id: int
    is_active: bool = True

    salary: SalaryIn


class CompensationForm(CamelModel):
    name: str = Field(min_length=2)
    amount: Decimal = Field(ge=0)
    description: str | None = None
    type: CompensationType
    is_percentage: bool = False


class SalaryWithCompensationsForm(CamelModel):
    basic_salary: Decimal = Field(ge=1)
    currency: str = Field(min_length=1, max_length=3)
    salary_type: SalaryType
    effective_date: date
    compensation_ids: list[int] = []


class MutationResult(CamelModel):
    success: bool
    error: str | None = None
    message: str | None = None


class EmployeeResult(MutationResult):
    employee: EmployeeWithOrg | None = None
    salary: SalaryOut | None = None


class CompensationResult(MutationResult):
    compensation: CompensationOut | None = None


class SalaryResult(MutationResult):
    salary: SalaryWithCompensations | None = None
