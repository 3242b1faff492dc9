"""
Pytest fixtures for the test suite.

Data-layer tests get a fresh in-memory SQLite database per test, so services
can commit and roll back for real without leaking into other tests.
API tests build the app through `create_app` with their own settings.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from employee_records.db.session import build_engine, build_session_factory


TEST_DB_URL = "sqlite:///:memory:"

OPEN_SECURITY_CONFIG = """
security:
  default:
    auth_required: false
"""


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    engine = build_engine(TEST_DB_URL)
    yield engine
    engine.dispose()


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from employee_records.db.base import Base
    import employee_records.models.hr  # noqa: F401
    import employee_records.models.security  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return build_session_factory(tables)


@pytest.fixture
def db_session(session_factory):
    """Session bound to the per-test database."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def org(db_session):
    """One department with one position: (department, position)."""
    from employee_records.models.hr import Department, Position

    dept = Department(name="Engineering", description="Eng")
    db_session.add(dept)
    db_session.flush()
    position = Position(title="Backend Developer", department_id=dept.id)
    db_session.add(position)
    db_session.commit()
    return dept, position


@pytest.fixture
def make_employee(db_session, org):
    """
    Factory: insert an employee (optionally with an active salary) and commit.
    """
    from employee_records.models.hr import Employee, Salary, SalaryType

    dept, position = org

    def _make(
        first_name: str,
        last_name: str,
        *,
        email: str | None = None,
        is_active: bool = True,
        basic_salary: str | None = "1000",
        effective_date: date = date(2024, 1, 1),
        department=None,
        position_=None,
        phone: str | None = None,
        hire_date: date = date(2023, 1, 1),
    ) -> Employee:
        employee = Employee(
            first_name=first_name,
            last_name=last_name,
            email=email or f"{first_name}.{last_name}@example.com".lower(),
            phone=phone,
            hire_date=hire_date,
            department_id=(department or dept).id,
            position_id=(position_ or position).id,
            is_active=is_active,
        )
        if basic_salary is not None:
            amount = Decimal(basic_salary)
            employee.salaries.append(
                Salary(
                    basic_salary=amount,
                    gross_salary=amount,
                    net_salary=amount,
                    currency="USD",
                    salary_type=SalaryType.MONTHLY,
                    effective_date=effective_date,
                    is_active=True,
                )
            )
        db_session.add(employee)
        db_session.commit()
        return employee

    return _make


@pytest.fixture
def open_security_config(tmp_path):
    path = tmp_path / "security_config.yaml"
    path.write_text(OPEN_SECURITY_CONFIG, encoding="utf-8")
    return path


@pytest.fixture
def api(open_security_config):
    """TestClient over an empty database with auth switched off."""
    from employee_records.main import create_app
    from employee_records.settings import Settings

    settings = Settings(
        db_url=TEST_DB_URL,
        security_config_path=str(open_security_config),
        seed_demo_data=False,
    )
    app = create_app(settings)
    with TestClient(app) as client:
        client.session_factory = app.state.session_factory
        yield client


@pytest.fixture
def secured_api():
    """TestClient over the seeded demo database with the bundled security config."""
    from employee_records.main import create_app
    from employee_records.settings import Settings

    app = create_app(Settings(db_url=TEST_DB_URL, seed_demo_data=True))
    with TestClient(app) as client:
        yield client
