from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from employee_records.db.session import get_db
from employee_records.schemas.hr import DepartmentWithCount, PositionWithDepartment
from employee_records.services import employees as employee_service

router = APIRouter(tags=["catalog"])


@router.get("/departments", response_model=list[DepartmentWithCount])
def list_departments(db: Session = Depends(get_db)) -> list[DepartmentWithCount]:
    return employee_service.list_departments(db)


@router.get("/positions", response_model=list[PositionWithDepartment])
def list_positions(
    department_id: int | None = Query(None, alias="departmentId"),
    db: Session = Depends(get_db),
) -> list[PositionWithDepartment]:
    return employee_service.list_positions(db, department_id=department_id)
