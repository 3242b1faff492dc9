from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from employee_records.db.session import get_db
from employee_records.schemas.forms import (
    EmployeeForm,
    EmployeeResult,
    FilterCondition,
    SalaryResult,
    SalaryWithCompensationsForm,
)
from employee_records.schemas.hr import EmployeeDetail, EmployeePage
from employee_records.schemas.security import UserOut
from employee_records.security.dependencies import get_current_user
from employee_records.services import employees as employee_service
from employee_records.services import salaries as salary_service
from employee_records.settings import Settings, get_app_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["employees"])

_filters_adapter = TypeAdapter(list[Any])


def parse_filters(raw: str | None) -> list[FilterCondition]:
    """
    Decode the JSON `filters` query param.

    Input that is not a JSON array means no filters. Inside the array each
    condition is validated on its own; a malformed one is dropped and the
    rest still apply.
    """

    if not raw:
        return []
    try:
        items = _filters_adapter.validate_json(raw)
    except ValidationError:
        logger.warning("Ignoring malformed filters param")
        return []

    conditions: list[FilterCondition] = []
    for index, item in enumerate(items):
        try:
            conditions.append(FilterCondition.model_validate(item))
        except ValidationError as exc:
            logger.warning("Dropping malformed filter index=%d (%d errors)", index, exc.error_count())
    return conditions


@router.get("/me", response_model=UserOut)
def me(user=Depends(get_current_user)) -> UserOut:
    return user


@router.get("/employees", response_model=EmployeePage)
def list_employees(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100, alias="pageSize"),
    filters: str | None = Query(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    result = employee_service.list_employees(
        db,
        page=page,
        page_size=page_size or settings.default_page_size,
        filters=parse_filters(filters),
        strict=settings.strict_filters,
    )
    if result.error:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=EmployeePage(error=result.error).model_dump(mode="json", by_alias=True),
        )
    return result


@router.get("/employees/{id}", response_model=EmployeeDetail)
def get_employee(id: int, db: Session = Depends(get_db)) -> EmployeeDetail:
    employee = employee_service.get_employee(db, id)
    if employee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")
    return employee


@router.post("/employees", response_model=EmployeeResult, status_code=status.HTTP_201_CREATED)
def create_employee(form: EmployeeForm, response: Response, db: Session = Depends(get_db)) -> EmployeeResult:
    result = employee_service.create_employee(db, form)
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return result


@router.put("/employees/{id}", response_model=EmployeeResult)
def update_employee(id: int, form: EmployeeForm, response: Response, db: Session = Depends(get_db)) -> EmployeeResult:
    result = employee_service.update_employee(db, id, form)
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return result


@router.put("/employees/{id}/salary", response_model=SalaryResult)
def update_salary(
    id: int,
    form: SalaryWithCompensationsForm,
    response: Response,
    db: Session = Depends(get_db),
) -> SalaryResult:
    result = salary_service.update_salary_with_compensations(db, id, form, form.compensation_ids)
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return result
