"""
Salary versioning and point-in-time reconstruction.

A salary history is append-only: changing pay closes the active row
(is_active=false, end_date=now) and inserts a new active row in the same
transaction. The only in-place update is that close-out.

Background for newcomers:
    `end_date` is the instant a row was superseded, not the day before the
    next row's effective_date. A raise entered today with an effective_date
    next month leaves the old row ending today. The month query below works
    on these stored intervals as they are.
"""

from __future__ import annotations

import calendar
import csv
import io
import logging
import math
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from employee_records.db.base import utcnow
from employee_records.models.hr import Compensation, CompensationType, Employee, Salary, SalaryType
from employee_records.schemas.forms import SalaryIn, SalaryResult, SalaryWithCompensationsForm
from employee_records.schemas.hr import SalaryPage, SalarySnapshot, SalaryWithCompensations
from employee_records.services.errors import NotFoundError, QueryFailure, RecordsError, TransactionFailure

logger = logging.getLogger(__name__)

_ADDITIONS = frozenset({CompensationType.BONUS, CompensationType.ALLOWANCE})

CSV_HEADERS = (
    "Employee Name",
    "Email",
    "Department",
    "Position",
    "Basic Salary",
    "Bonuses & Allowances",
    "Deductions",
    "Gross Salary",
    "Net Salary",
    "Currency",
    "Salary Type",
    "Effective Date",
    "Status",
)


# ---- Totals --------------------------------------------------------------------------


def compensation_amount(compensation: Any, basic_salary: Decimal) -> Decimal:
    """Absolute amount of one compensation; percentages are taken of the basic salary."""
    amount = Decimal(str(compensation.amount))
    if compensation.is_percentage:
        return basic_salary * amount / 100
    return amount


def summarize_compensations(basic_salary: Decimal, compensations: Iterable[Any]) -> tuple[Decimal, Decimal]:
    """Return (bonuses + allowances, deductions)."""
    additions = Decimal(0)
    deductions = Decimal(0)
    for compensation in compensations:
        amount = compensation_amount(compensation, basic_salary)
        if CompensationType(compensation.type) in _ADDITIONS:
            additions += amount
        else:
            deductions += amount
    return additions, deductions


def compute_salary_totals(basic_salary: Decimal, compensations: Iterable[Any]) -> tuple[Decimal, Decimal]:
    """
    Return (gross, net).

    gross = basic + bonuses + allowances
    net   = gross - deductions

    Deductions never touch gross. Currencies are not compared.
    """
    basic_salary = Decimal(str(basic_salary))
    additions, deductions = summarize_compensations(basic_salary, compensations)
    gross = basic_salary + additions
    return gross, gross - deductions


# ---- Writes (run inside the caller's transaction) -----------------------------------


def open_initial_salary(db: Session, employee_id: int, salary_in: SalaryIn) -> Salary:
    """First salary of a new employee; gross/net come straight from the form."""
    salary = Salary(
        employee_id=employee_id,
        basic_salary=salary_in.basic_salary,
        gross_salary=salary_in.gross_salary,
        net_salary=salary_in.net_salary,
        currency=salary_in.currency,
        salary_type=salary_in.salary_type,
        effective_date=salary_in.effective_date,
        end_date=None,
        is_active=True,
    )
    db.add(salary)
    db.flush()
    return salary


def close_active_salaries(db: Session, employee_id: int, closed_at: datetime) -> None:
    db.execute(
        update(Salary)
        .where(Salary.employee_id == employee_id, Salary.is_active.is_(True))
        .values(is_active=False, end_date=closed_at),
        execution_options={"synchronize_session": "fetch"},
    )


def rotate_salary(
    db: Session,
    employee_id: int,
    *,
    basic_salary: Decimal,
    gross_salary: Decimal,
    net_salary: Decimal,
    currency: str,
    salary_type: SalaryType,
    effective_date: date,
    compensations: Sequence[Compensation] = (),
    now: datetime | None = None,
) -> Salary:
    """Close the active salary and open a new one. Does not commit."""
    close_active_salaries(db, employee_id, now or utcnow())

    salary = Salary(
        employee_id=employee_id,
        basic_salary=basic_salary,
        gross_salary=gross_salary,
        net_salary=net_salary,
        currency=currency,
        salary_type=salary_type,
        effective_date=effective_date,
        end_date=None,
        is_active=True,
        compensations=list(compensations),
    )
    db.add(salary)
    db.flush()
    return salary


def _rotate_with_compensations(
    db: Session,
    employee_id: int,
    salary_data: SalaryWithCompensationsForm,
    compensation_ids: Sequence[int],
) -> tuple[Salary, Sequence[Compensation]]:
    try:
        if db.get(Employee, employee_id) is None:
            raise NotFoundError("Employee not found")

        compensations: Sequence[Compensation] = []
        if compensation_ids:
            compensations = db.scalars(
                select(Compensation)
                .where(Compensation.id.in_(list(compensation_ids)), Compensation.is_active.is_(True))
                .order_by(Compensation.id)
            ).all()

        gross, net = compute_salary_totals(salary_data.basic_salary, compensations)
        salary = rotate_salary(
            db,
            employee_id,
            basic_salary=salary_data.basic_salary,
            gross_salary=gross,
            net_salary=net,
            currency=salary_data.currency,
            salary_type=salary_data.salary_type,
            effective_date=salary_data.effective_date,
            compensations=compensations,
        )
        db.commit()
    except SQLAlchemyError as exc:
        logger.exception("Salary rotation failed employee_id=%s", employee_id)
        raise TransactionFailure("Failed to update salary. Please try again.") from exc
    return salary, compensations


def update_salary_with_compensations(
    db: Session,
    employee_id: int,
    salary_data: SalaryWithCompensationsForm,
    compensation_ids: Sequence[int],
) -> SalaryResult:
    """
    Replace the employee's salary, deriving gross/net from a compensation set.

    Unknown or inactive compensation ids are dropped. All-or-nothing: on any
    failure the session is rolled back and a generic error is returned.
    """

    try:
        salary, compensations = _rotate_with_compensations(db, employee_id, salary_data, compensation_ids)
    except RecordsError as exc:
        db.rollback()
        return SalaryResult(success=False, error=exc.message)

    logger.info(
        "Salary rotated employee_id=%s salary_id=%s compensations=%d",
        employee_id,
        salary.id,
        len(compensations),
    )
    return SalaryResult(
        success=True,
        salary=SalaryWithCompensations.model_validate(salary),
        message="Salary updated with compensations successfully",
    )


# ---- Point-in-time reads -------------------------------------------------------------


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of the month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def snapshot_ids(month: int | None = None, year: int | None = None) -> Select:
    """
    Ids of the salary rows that make up a snapshot.

    Without a month/year: every active row. With one: rows whose validity
    interval overlaps the month, reduced to the latest effective_date per
    employee (highest id on ties).
    """

    if month is None or year is None:
        return select(Salary.id).where(Salary.is_active.is_(True))

    start, end = month_bounds(year, month)
    ranked = (
        select(
            Salary.id.label("id"),
            func.row_number()
            .over(
                partition_by=Salary.employee_id,
                order_by=(Salary.effective_date.desc(), Salary.id.desc()),
            )
            .label("rank"),
        )
        .where(
            Salary.effective_date <= end,
            or_(Salary.end_date.is_(None), Salary.end_date >= datetime.combine(start, time.min)),
        )
        .subquery()
    )
    return select(ranked.c.id).where(ranked.c.rank == 1)


def _fetch_snapshots(
    db: Session,
    ids: Select,
    page: int,
    page_size: int | None,
) -> tuple[int, list[SalarySnapshot]]:
    try:
        total = db.scalar(select(func.count()).select_from(ids.subquery())) or 0

        stmt = (
            select(Salary)
            .join(Salary.employee)
            .where(Salary.id.in_(ids))
            .options(
                selectinload(Salary.compensations),
                selectinload(Salary.employee).selectinload(Employee.department),
                selectinload(Salary.employee).selectinload(Employee.position),
            )
            .order_by(Employee.last_name, Employee.first_name, Salary.effective_date.desc(), Salary.id.desc())
        )
        if page_size is not None:
            stmt = stmt.offset((page - 1) * page_size).limit(page_size)

        rows = db.scalars(stmt).all()
    except SQLAlchemyError as exc:
        logger.exception("Salary snapshot query failed page=%s", page)
        raise QueryFailure("Failed to fetch salaries") from exc

    return total, [SalarySnapshot.model_validate(row) for row in rows]


def list_salary_snapshots(
    db: Session,
    month: int | None = None,
    year: int | None = None,
    page: int = 1,
    page_size: int | None = 10,
) -> SalaryPage:
    """
    One salary per employee for the current snapshot or a given month, paged.

    `page_size=None` returns every row on a single page (used by the CSV export).
    The per-employee reduction runs before paging, so totals match the rows.
    """

    if page < 1 or (page_size is not None and page_size < 1):
        logger.warning("Rejected salary query page=%s page_size=%s", page, page_size)
        return SalaryPage(error="Invalid paging parameters")

    try:
        total, data = _fetch_snapshots(db, snapshot_ids(month, year), page, page_size)
    except QueryFailure as exc:
        return SalaryPage(page_size=page_size or 0, error=exc.message)
    except ValueError:
        logger.warning("Invalid snapshot month=%s year=%s", month, year)
        return SalaryPage(page_size=page_size or 0, error="Failed to fetch salaries")

    if page_size is None:
        return SalaryPage(data=data, total_count=total, total_pages=1 if total else 0, current_page=1, page_size=total)

    return SalaryPage(
        data=data,
        total_count=total,
        total_pages=math.ceil(total / page_size),
        current_page=page,
        page_size=page_size,
    )


# ---- Export --------------------------------------------------------------------------


def export_filename(month: int | None = None, year: int | None = None) -> str:
    if month is None or year is None:
        return "salaries-current.csv"
    return f"salaries-{year:04d}-{month:02d}.csv"


def export_salaries_csv(snapshots: Iterable[SalarySnapshot]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)

    for snapshot in snapshots:
        basic = Decimal(str(snapshot.basic_salary))
        additions, deductions = summarize_compensations(basic, snapshot.compensations)
        employee = snapshot.employee
        writer.writerow(
            [
                f"{employee.first_name} {employee.last_name}",
                employee.email,
                employee.department.name,
                employee.position.title,
                snapshot.basic_salary,
                float(additions),
                float(deductions),
                snapshot.gross_salary,
                snapshot.net_salary,
                snapshot.currency,
                snapshot.salary_type.value,
                snapshot.effective_date.isoformat(),
                "Active" if employee.is_active else "Inactive",
            ]
        )

    return buffer.getvalue()
