from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from employee_records.models.hr import Department, Employee, Position, Salary
from employee_records.schemas.forms import EmployeeForm, EmployeeResult, FilterCondition
from employee_records.schemas.hr import (
    DepartmentWithCount,
    EmployeeDetail,
    EmployeeListItem,
    EmployeePage,
    EmployeeWithOrg,
    PositionWithDepartment,
    SalaryOut,
)
from employee_records.services.errors import (
    DuplicateEmailError,
    NotFoundError,
    QueryFailure,
    RecordsError,
    TransactionFailure,
    UnsupportedFilterError,
)
from employee_records.services.filters import build_employee_predicate
from employee_records.services.salaries import open_initial_salary, rotate_salary

logger = logging.getLogger(__name__)


# ---- Reads ---------------------------------------------------------------------------


def list_employees(
    db: Session,
    page: int = 1,
    page_size: int = 10,
    filters: Sequence[FilterCondition] = (),
    *,
    strict: bool = False,
) -> EmployeePage:
    """
    One page of employees matching `filters`.

    Active employees first, then by last and first name. Each row carries its
    department, position and current active salary. Never raises: failures
    come back as an empty page with `error` set.
    """

    if page < 1 or page_size < 1:
        logger.warning("Rejected employee query page=%s page_size=%s", page, page_size)
        return EmployeePage(error="Invalid paging parameters")

    try:
        predicate = build_employee_predicate(filters, strict=strict)
        total, data = _fetch_employee_page(db, predicate, page, page_size)
    except UnsupportedFilterError as exc:
        logger.warning("Rejected employee query: %s", exc.message)
        return EmployeePage(page_size=page_size, error=exc.message)
    except QueryFailure as exc:
        return EmployeePage(page_size=page_size, error=exc.message)

    logger.debug("Employee query page=%s total=%s filters=%d", page, total, len(filters))
    return EmployeePage(
        data=data,
        total_count=total,
        total_pages=math.ceil(total / page_size),
        current_page=page,
        page_size=page_size,
    )


def _fetch_employee_page(
    db: Session,
    predicate: ColumnElement[bool],
    page: int,
    page_size: int,
) -> tuple[int, list[EmployeeListItem]]:
    try:
        total = db.scalar(select(func.count()).select_from(Employee).where(predicate)) or 0
        rows = db.scalars(
            select(Employee)
            .where(predicate)
            .options(
                selectinload(Employee.department),
                selectinload(Employee.position),
                selectinload(Employee.active_salary),
            )
            .order_by(Employee.is_active.desc(), Employee.last_name, Employee.first_name, Employee.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        ).all()
    except SQLAlchemyError as exc:
        logger.exception("Employee query failed page=%s page_size=%s", page, page_size)
        raise QueryFailure("Failed to fetch employees") from exc

    return total, [EmployeeListItem.model_validate(row) for row in rows]


def get_employee(db: Session, employee_id: int) -> EmployeeDetail | None:
    """Employee with department, position and full salary history (newest first)."""
    try:
        employee = db.scalars(
            select(Employee)
            .where(Employee.id == employee_id)
            .options(
                selectinload(Employee.department),
                selectinload(Employee.position),
                selectinload(Employee.salaries).selectinload(Salary.compensations),
            )
            .execution_options(populate_existing=True)
        ).first()
    except SQLAlchemyError:
        logger.exception("Failed to load employee id=%s", employee_id)
        return None

    if employee is None:
        return None
    return EmployeeDetail.model_validate(employee)


def list_departments(db: Session) -> list[DepartmentWithCount]:
    try:
        rows = db.execute(
            select(Department, func.count(Employee.id))
            .outerjoin(Department.employees)
            .group_by(Department.id)
            .order_by(Department.name)
        ).all()
    except SQLAlchemyError:
        logger.exception("Failed to list departments")
        return []

    return [
        DepartmentWithCount(
            id=department.id,
            name=department.name,
            description=department.description,
            employee_count=count,
        )
        for department, count in rows
    ]


def list_positions(db: Session, department_id: int | None = None) -> list[PositionWithDepartment]:
    stmt = (
        select(Position, func.count(Employee.id))
        .outerjoin(Position.employees)
        .options(selectinload(Position.department))
        .group_by(Position.id)
        .order_by(Position.title, Position.id)
    )
    if department_id is not None:
        stmt = stmt.where(Position.department_id == department_id)

    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError:
        logger.exception("Failed to list positions department_id=%s", department_id)
        return []

    positions = []
    for position, count in rows:
        item = PositionWithDepartment.model_validate(position)
        item.employee_count = count
        positions.append(item)
    return positions


# ---- Mutations -----------------------------------------------------------------------


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    stmt = select(Employee.id).where(Employee.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Employee.id != exclude_id)
    return db.execute(stmt.limit(1)).first() is not None


def _apply_form(employee: Employee, form: EmployeeForm) -> None:
    employee.first_name = form.first_name
    employee.last_name = form.last_name
    employee.email = form.email
    employee.phone = form.phone or None
    employee.hire_date = form.hire_date
    employee.department_id = form.department_id
    employee.position_id = form.position_id
    employee.is_active = form.is_active


def _insert_employee(db: Session, form: EmployeeForm) -> tuple[Employee, Salary]:
    try:
        if _email_taken(db, form.email):
            raise DuplicateEmailError()

        employee = Employee()
        _apply_form(employee, form)
        db.add(employee)
        db.flush()

        salary = open_initial_salary(db, employee.id, form.salary)
        db.commit()
    except SQLAlchemyError as exc:
        logger.exception("Failed to create employee email=%s", form.email)
        raise TransactionFailure("Failed to create employee. Please try again.") from exc
    return employee, salary


def create_employee(db: Session, form: EmployeeForm) -> EmployeeResult:
    """
    Insert an employee and its initial active salary in one transaction.

    The email check runs before any write, so a duplicate leaves the
    database untouched.
    """

    try:
        employee, salary = _insert_employee(db, form)
    except RecordsError as exc:
        db.rollback()
        return EmployeeResult(success=False, error=exc.message)

    logger.info("Employee created id=%s salary_id=%s", employee.id, salary.id)
    return EmployeeResult(
        success=True,
        employee=EmployeeWithOrg.model_validate(employee),
        salary=SalaryOut.model_validate(salary),
        message="Employee and salary created successfully",
    )


def _save_employee(db: Session, employee_id: int, form: EmployeeForm) -> tuple[Employee, Salary]:
    try:
        employee = db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee not found")
        if _email_taken(db, form.email, exclude_id=employee_id):
            raise DuplicateEmailError()

        _apply_form(employee, form)
        salary = rotate_salary(
            db,
            employee_id,
            basic_salary=form.salary.basic_salary,
            gross_salary=form.salary.gross_salary,
            net_salary=form.salary.net_salary,
            currency=form.salary.currency,
            salary_type=form.salary.salary_type,
            effective_date=form.salary.effective_date,
        )
        db.commit()
        db.refresh(employee, attribute_names=["department", "position"])
    except SQLAlchemyError as exc:
        logger.exception("Failed to update employee id=%s", employee_id)
        raise TransactionFailure("Failed to update employee. Please try again.") from exc
    return employee, salary


def update_employee(db: Session, employee_id: int, form: EmployeeForm) -> EmployeeResult:
    """
    Update the employee's fields and rotate its salary to the submitted figures.

    gross/net are taken as given; no compensation math on this path.
    """

    try:
        employee, salary = _save_employee(db, employee_id, form)
    except RecordsError as exc:
        db.rollback()
        return EmployeeResult(success=False, error=exc.message)

    logger.info("Employee updated id=%s salary_id=%s", employee_id, salary.id)
    return EmployeeResult(
        success=True,
        employee=EmployeeWithOrg.model_validate(employee),
        salary=SalaryOut.model_validate(salary),
        message="Employee updated successfully",
    )
