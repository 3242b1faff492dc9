"""
Tests for salary versioning, point-in-time snapshots and CSV export.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from employee_records.models.hr import Compensation, CompensationType, Salary, SalaryType
from employee_records.schemas.forms import SalaryWithCompensationsForm
from employee_records.services.salaries import (
    CSV_HEADERS,
    compute_salary_totals,
    export_filename,
    export_salaries_csv,
    list_salary_snapshots,
    month_bounds,
    rotate_salary,
    update_salary_with_compensations,
)


def _comp(amount: str, type_: CompensationType, *, percentage: bool = False, active: bool = True) -> Compensation:
    return Compensation(
        name=f"{type_.value.title()} {amount}",
        amount=Decimal(amount),
        type=type_,
        is_percentage=percentage,
        is_active=active,
    )


def _form(basic: str = "1000", effective: date = date(2024, 7, 1)) -> SalaryWithCompensationsForm:
    return SalaryWithCompensationsForm(
        basic_salary=Decimal(basic),
        currency="USD",
        salary_type=SalaryType.MONTHLY,
        effective_date=effective,
    )


def _active_count(db, employee_id: int) -> int:
    return db.scalar(
        select(func.count()).select_from(Salary).where(Salary.employee_id == employee_id, Salary.is_active.is_(True))
    )


def _rotate(db, employee_id: int, basic: str, effective: date, now: datetime) -> Salary:
    amount = Decimal(basic)
    salary = rotate_salary(
        db,
        employee_id,
        basic_salary=amount,
        gross_salary=amount,
        net_salary=amount,
        currency="USD",
        salary_type=SalaryType.MONTHLY,
        effective_date=effective,
        now=now,
    )
    db.commit()
    return salary


# ---- Totals --------------------------------------------------------------------------


def test_fixed_bonus_raises_gross_and_net():
    gross, net = compute_salary_totals(Decimal("1000"), [_comp("100", CompensationType.BONUS)])
    assert gross == Decimal("1100")
    assert net == Decimal("1100")


def test_percentage_deduction_only_reduces_net():
    gross, net = compute_salary_totals(Decimal("1000"), [_comp("10", CompensationType.DEDUCTION, percentage=True)])
    assert gross == Decimal("1000")
    assert net == Decimal("900")


def test_mixed_compensations():
    comps = [
        _comp("200", CompensationType.ALLOWANCE),
        _comp("5", CompensationType.BONUS, percentage=True),
        _comp("50", CompensationType.DEDUCTION),
    ]
    gross, net = compute_salary_totals(Decimal("2000"), comps)
    assert gross == Decimal("2300")
    assert net == Decimal("2250")


# ---- Rotation ------------------------------------------------------------------------


def test_update_with_compensations_rotates_and_attaches_resolved_set(db_session, make_employee):
    employee = make_employee("Alice", "Anderson", basic_salary="800")
    original = employee.salaries[0]
    bonus = _comp("100", CompensationType.BONUS)
    retired = _comp("500", CompensationType.ALLOWANCE, active=False)
    db_session.add_all([bonus, retired])
    db_session.commit()

    result = update_salary_with_compensations(db_session, employee.id, _form(), [bonus.id, retired.id, 9999])

    assert result.success is True
    assert result.salary.gross_salary == 1100
    assert result.salary.net_salary == 1100
    assert [c.id for c in result.salary.compensations] == [bonus.id]
    assert result.salary.is_active is True
    assert result.salary.end_date is None

    db_session.refresh(original)
    assert original.is_active is False
    assert original.end_date is not None
    assert _active_count(db_session, employee.id) == 1


def test_update_with_no_compensations_uses_basic(db_session, make_employee):
    employee = make_employee("Alice", "Anderson")

    result = update_salary_with_compensations(db_session, employee.id, _form("1500"), [])

    assert result.success is True
    assert result.salary.gross_salary == 1500
    assert result.salary.net_salary == 1500
    assert result.salary.compensations == []


def test_rapid_rotations_keep_one_active_row(db_session, make_employee):
    employee = make_employee("Alice", "Anderson")

    for i in range(5):
        result = update_salary_with_compensations(db_session, employee.id, _form(str(1000 + i)), [])
        assert result.success is True
        assert _active_count(db_session, employee.id) == 1

    history = db_session.scalars(select(Salary).where(Salary.employee_id == employee.id)).all()
    assert len(history) == 6
    assert sum(1 for s in history if s.end_date is None) == 1


def test_closed_row_end_date_is_now_not_next_effective_date(db_session, make_employee):
    employee = make_employee("Alice", "Anderson", effective_date=date(2024, 1, 1))
    old = employee.salaries[0]

    _rotate(db_session, employee.id, "2000", date(2030, 1, 1), now=datetime(2024, 5, 5, 12, 0))

    db_session.refresh(old)
    # The close-out instant is recorded as-is, even though the new row starts years later.
    assert old.end_date == datetime(2024, 5, 5, 12, 0)


def test_update_unknown_employee_is_not_found(db_session):
    result = update_salary_with_compensations(db_session, 4242, _form(), [])

    assert result.success is False
    assert result.error == "Employee not found"


def test_failed_rotation_rolls_back_close_out(db_session, make_employee, monkeypatch):
    employee = make_employee("Alice", "Anderson")
    original_id = employee.salaries[0].id

    def broken_flush(*args, **kwargs):
        raise OperationalError("INSERT INTO salaries", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "flush", broken_flush)
    result = update_salary_with_compensations(db_session, employee.id, _form("5000"), [])
    monkeypatch.undo()

    assert result.success is False
    assert result.error == "Failed to update salary. Please try again."
    active = db_session.scalars(
        select(Salary).where(Salary.employee_id == employee.id, Salary.is_active.is_(True))
    ).all()
    assert [s.id for s in active] == [original_id]
    assert active[0].end_date is None


def test_database_rejects_second_active_salary(db_session, make_employee):
    employee = make_employee("Alice", "Anderson")

    db_session.add(
        Salary(
            employee_id=employee.id,
            basic_salary=Decimal("1"),
            gross_salary=Decimal("1"),
            net_salary=Decimal("1"),
            currency="USD",
            salary_type=SalaryType.MONTHLY,
            effective_date=date(2024, 2, 1),
            is_active=True,
        )
    )
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


# ---- Point-in-time snapshots ---------------------------------------------------------


def test_month_bounds_handles_leap_years():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))


def test_current_snapshot_lists_active_rows_only(db_session, make_employee):
    alice = make_employee("Alice", "Anderson")
    make_employee("Bob", "Baker", basic_salary="2000")
    _rotate(db_session, alice.id, "1500", date(2024, 6, 1), now=datetime(2024, 5, 20))

    page = list_salary_snapshots(db_session)

    assert page.error is None
    assert page.total_count == 2
    assert [(s.employee.last_name, s.basic_salary) for s in page.data] == [("Anderson", 1500), ("Baker", 2000)]
    assert all(s.is_active for s in page.data)


def test_mid_month_raise_yields_single_latest_row(db_session, make_employee):
    alice = make_employee("Alice", "Anderson", basic_salary="1000", effective_date=date(2024, 1, 1))
    _rotate(db_session, alice.id, "1200", date(2024, 3, 15), now=datetime(2024, 3, 10, 9, 0))

    march = list_salary_snapshots(db_session, month=3, year=2024)
    february = list_salary_snapshots(db_session, month=2, year=2024)
    april = list_salary_snapshots(db_session, month=4, year=2024)

    assert [s.basic_salary for s in march.data] == [1200]
    assert march.total_count == 1
    assert [s.basic_salary for s in february.data] == [1000]
    assert [s.basic_salary for s in april.data] == [1200]


def test_salary_starting_after_month_is_excluded(db_session, make_employee):
    make_employee("Alice", "Anderson", effective_date=date(2024, 5, 2))

    page = list_salary_snapshots(db_session, month=4, year=2024)

    assert page.data == []
    assert page.total_count == 0
    assert page.total_pages == 0


def test_reduction_happens_before_paging(db_session, make_employee):
    for last in ("Clark", "Adams", "Baker"):
        employee = make_employee("Pat", last, basic_salary="1000", effective_date=date(2024, 1, 1))
        _rotate(db_session, employee.id, "1100", date(2024, 3, 20), now=datetime(2024, 3, 5))

    first = list_salary_snapshots(db_session, month=3, year=2024, page=1, page_size=2)
    second = list_salary_snapshots(db_session, month=3, year=2024, page=2, page_size=2)

    assert first.total_count == 3
    assert first.total_pages == 2
    assert [s.employee.last_name for s in first.data] == ["Adams", "Baker"]
    assert [s.employee.last_name for s in second.data] == ["Clark"]
    assert all(s.basic_salary == 1100 for s in first.data + second.data)


def test_snapshot_query_failure_returns_error_page(db_session, tables):
    from employee_records.db.base import Base

    Base.metadata.drop_all(bind=tables)

    page = list_salary_snapshots(db_session, month=1, year=2024)

    assert page.data == []
    assert page.total_count == 0
    assert page.error == "Failed to fetch salaries"


def test_snapshot_invalid_paging_returns_error_page(db_session, make_employee):
    make_employee("Pat", "Adams", basic_salary="1000")

    zero_size = list_salary_snapshots(db_session, page=1, page_size=0)
    zero_page = list_salary_snapshots(db_session, page=0, page_size=10)

    assert zero_size.data == []
    assert zero_size.page_size == 10
    assert zero_size.error == "Invalid paging parameters"
    assert zero_page.error == "Invalid paging parameters"
    assert list_salary_snapshots(db_session, page_size=None).total_count == 1


# ---- CSV -----------------------------------------------------------------------------


def test_export_csv_includes_compensation_breakdown(db_session, make_employee):
    employee = make_employee("Alice", "Anderson", basic_salary="1000")
    allowance = _comp("200", CompensationType.ALLOWANCE)
    tax = _comp("10", CompensationType.DEDUCTION, percentage=True)
    db_session.add_all([allowance, tax])
    db_session.commit()
    update_salary_with_compensations(db_session, employee.id, _form("1000", date(2024, 2, 1)), [allowance.id, tax.id])

    page = list_salary_snapshots(db_session, page_size=None)
    lines = export_salaries_csv(page.data).splitlines()

    assert lines[0] == ",".join(CSV_HEADERS)
    assert lines[1] == (
        "Alice Anderson,alice.anderson@example.com,Engineering,Backend Developer,"
        "1000.0,200.0,100.0,1200.0,1100.0,USD,MONTHLY,2024-02-01,Active"
    )


def test_export_filename():
    assert export_filename() == "salaries-current.csv"
    assert export_filename(3, 2024) == "salaries-2024-03.csv"
