from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from employee_records.db.base import Base, utcnow


class SalaryType(str, enum.Enum):
    HOURLY = "HOURLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class CompensationType(str, enum.Enum):
    ALLOWANCE = "ALLOWANCE"
    BONUS = "BONUS"
    DEDUCTION = "DEDUCTION"


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    positions: Mapped[list["Position"]] = relationship(back_populates="department")
    employees: Mapped[list["Employee"]] = relationship(back_populates="department")


class Position(Base):
    __tablename__ = "positions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    department: Mapped[Department] = relationship(back_populates="positions")
    employees: Mapped[list["Employee"]] = relationship(back_populates="position")


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)

    department_id: Mapped[int] = mapped_column(ForeignKey("departments.id"), nullable=False, index=True)
    position_id: Mapped[int] = mapped_column(ForeignKey("positions.id"), nullable=False, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    department: Mapped[Department] = relationship(back_populates="employees")
    position: Mapped[Position] = relationship(back_populates="employees")

    # Full history, newest first.
    salaries: Mapped[list["Salary"]] = relationship(
        back_populates="employee",
        order_by="Salary.effective_date.desc()",
    )
    active_salary: Mapped["Salary | None"] = relationship(
        primaryjoin="and_(Employee.id == Salary.employee_id, Salary.is_active == True)",  # noqa: E712
        viewonly=True,
        uselist=False,
    )


salary_compensations = Table(
    "salary_compensations",
    Base.metadata,
    Column("salary_id", ForeignKey("salaries.id"), primary_key=True),
    Column("compensation_id", ForeignKey("compensations.id"), primary_key=True),
)


class Compensation(Base):
    __tablename__ = "compensations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[CompensationType] = mapped_column(
        Enum(CompensationType, native_enum=False, length=20), nullable=False
    )
    is_percentage: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    salaries: Mapped[list["Salary"]] = relationship(
        secondary=salary_compensations,
        back_populates="compensations",
    )


class Salary(Base):
    __tablename__ = "salaries"
    __table_args__ = (
        # At most one active salary per employee.
        Index(
            "uq_salaries_employee_active",
            "employee_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False, index=True)

    basic_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    salary_type: Mapped[SalaryType] = mapped_column(Enum(SalaryType, native_enum=False, length=20), nullable=False)

    effective_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # Set to the instant the record was superseded; null for the open-ended tail.
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    employee: Mapped[Employee] = relationship(back_populates="salaries")
    compensations: Mapped[list[Compensation]] = relationship(
        secondary=salary_compensations,
        back_populates="salaries",
    )
