from __future__ import annotations

from decimal import Decimal

from employee_records.db.base import Base
from employee_records.models.hr import Compensation, CompensationType
from employee_records.schemas.forms import CompensationForm
from employee_records.services.compensations import create_compensation, list_compensations


def test_create_compensation(db_session):
    form = CompensationForm(
        name="Meal Allowance",
        amount=Decimal("75.50"),
        description="Daily meals",
        type=CompensationType.ALLOWANCE,
    )

    result = create_compensation(db_session, form)

    assert result.success is True
    assert result.message == "Compensation created successfully"
    assert result.compensation.id is not None
    assert result.compensation.amount == 75.5
    assert result.compensation.is_percentage is False
    assert result.compensation.is_active is True


def test_list_compensations_hides_inactive_and_sorts_by_name(db_session):
    db_session.add_all(
        [
            Compensation(name="Tax", amount=Decimal("20"), type=CompensationType.DEDUCTION, is_percentage=True),
            Compensation(name="Old Perk", amount=Decimal("10"), type=CompensationType.BONUS, is_active=False),
            Compensation(name="Bonus", amount=Decimal("100"), type=CompensationType.BONUS),
        ]
    )
    db_session.commit()

    names = [c.name for c in list_compensations(db_session)]

    assert names == ["Bonus", "Tax"]


def test_create_compensation_failure_is_reported(db_session, tables):
    Base.metadata.drop_all(bind=tables)
    form = CompensationForm(name="Gym", amount=Decimal("30"), type=CompensationType.ALLOWANCE)

    result = create_compensation(db_session, form)

    assert result.success is False
    assert result.error == "Failed to create compensation. Please try again."
    assert list_compensations(db_session) == []
