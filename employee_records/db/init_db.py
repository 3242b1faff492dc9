from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from employee_records.db.base import Base
from employee_records.models.hr import Compensation, CompensationType, Department, Employee, Position, Salary, SalaryType
from employee_records.models.security import Role, User

logger = logging.getLogger(__name__)


def init_db(engine: Engine, session_factory: sessionmaker[Session], *, seed: bool = True) -> None:
    """
    Create tables and, when asked, seed demo data.

    Seeding only runs against an empty database.
    """

    Base.metadata.create_all(bind=engine)
    if not seed:
        return

    with session_factory() as db:
        if _has_seed_data(db):
            return
        _seed(db)
        logger.info("Seeded demo data")


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Department.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    # Departments
    engineering = Department(name="Engineering", description="Software development and technical infrastructure")
    people = Department(name="Human Resources", description="Employee management and organizational development")
    marketing = Department(name="Marketing", description="Brand promotion and customer acquisition")
    finance = Department(name="Finance", description="Financial planning and accounting")
    db.add_all([engineering, people, marketing, finance])
    db.flush()

    # Positions
    backend = Position(title="Backend Developer", description="Server-side applications and APIs", department_id=engineering.id)
    frontend = Position(title="Frontend Developer", description="User interfaces", department_id=engineering.id)
    hr_specialist = Position(title="HR Specialist", description="Recruiting and employee relations", department_id=people.id)
    marketer = Position(title="Marketing Manager", description="Campaign planning", department_id=marketing.id)
    accountant = Position(title="Accountant", description="Bookkeeping and reporting", department_id=finance.id)
    db.add_all([backend, frontend, hr_specialist, marketer, accountant])
    db.flush()

    # Compensation catalog
    db.add_all(
        [
            Compensation(name="Transport Allowance", amount=Decimal("150"), type=CompensationType.ALLOWANCE),
            Compensation(name="Performance Bonus", amount=Decimal("10"), type=CompensationType.BONUS, is_percentage=True),
            Compensation(name="Income Tax", amount=Decimal("20"), type=CompensationType.DEDUCTION, is_percentage=True),
            Compensation(name="Health Insurance", amount=Decimal("120"), type=CompensationType.DEDUCTION),
        ]
    )

    # Employees, each with one active salary
    people_rows = [
        ("John", "Doe", "john.doe@company.com", backend, date(2022, 3, 15), Decimal("7500"), True),
        ("Jane", "Smith", "jane.smith@company.com", frontend, date(2021, 7, 1), Decimal("7000"), True),
        ("Maria", "Garcia", "maria.garcia@company.com", hr_specialist, date(2020, 1, 10), Decimal("5200"), True),
        ("Tom", "Brown", "tom.brown@company.com", marketer, date(2019, 11, 4), Decimal("6100"), False),
        ("Aisha", "Khan", "aisha.khan@company.com", accountant, date(2023, 5, 22), Decimal("5800"), True),
    ]
    for first, last, email, position, hired, basic, active in people_rows:
        employee = Employee(
            first_name=first,
            last_name=last,
            email=email,
            hire_date=hired,
            department_id=position.department_id,
            position_id=position.id,
            is_active=active,
        )
        employee.salaries.append(
            Salary(
                basic_salary=basic,
                gross_salary=basic,
                net_salary=basic,
                currency="USD",
                salary_type=SalaryType.MONTHLY,
                effective_date=hired,
                is_active=True,
            )
        )
        db.add(employee)

    # Users for the auth gate (bearer token = user id)
    admin = Role(name="admin", description="System administrator")
    hr_manager = Role(name="hr_manager", description="Creates and edits employee records")
    hr_viewer = Role(name="hr_viewer", description="Read-only access to employee records")
    db.add_all([admin, hr_manager, hr_viewer])
    db.flush()

    u1 = User(username="alice_admin", email="alice.admin@company.com", is_active=True)
    u1.roles.append(admin)
    u2 = User(username="harry_hr", email="harry.hr@company.com", is_active=True)
    u2.roles.append(hr_manager)
    u3 = User(username="vera_viewer", email="vera.viewer@company.com", is_active=True)
    u3.roles.append(hr_viewer)
    db.add_all([u1, u2, u3])

    db.commit()
