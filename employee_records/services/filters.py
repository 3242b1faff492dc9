"""
Employee filter predicates.

Turns a list of `{attribute, operation, value}` conditions (as sent by the
table filter in the UI) into one SQLAlchemy boolean expression over `Employee`.

Key ideas:
- Attributes and operations are closed enums; each attribute maps through a
  lookup table to a predicate constructor.
- A pair the table does not support drops out as a no-op (`true()`), and a
  warning is logged. With `strict=True` it raises `UnsupportedFilterError`.
- A value that cannot be parsed for a comparison (e.g. "abc" for salary) is
  a no-op in both modes.
- Conditions are ANDed together.
"""

from __future__ import annotations

import enum
import logging
import operator
from collections.abc import Callable, Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import ColumnElement, and_, not_, or_, true

from employee_records.models.hr import Department, Employee, Position, Salary
from employee_records.schemas.forms import FilterCondition
from employee_records.services.errors import UnsupportedFilterError

logger = logging.getLogger(__name__)


class FilterOperation(str, enum.Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    GREATER_THAN_EQUAL = "greater_than_equal"
    LESS_THAN = "less_than"
    LESS_THAN_EQUAL = "less_than_equal"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class FilterAttribute(str, enum.Enum):
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    EMAIL = "email"
    PHONE = "phone"
    HIRE_DATE = "hireDate"
    DEPARTMENT_ID = "departmentId"
    POSITION_ID = "positionId"

    # Virtual attributes
    NAME = "name"
    SALARY = "salary"
    DEPARTMENT_NAME = "departmentName"
    POSITION_TITLE = "positionTitle"
    IS_ACTIVE = "isActive"


Predicate = ColumnElement[bool]
# Returns None when the operation is not supported for the attribute.
PredicateBuilder = Callable[[FilterOperation, str], "Predicate | None"]


_COMPARISONS: dict[FilterOperation, Callable[[Any, Any], Any]] = {
    FilterOperation.GREATER_THAN: operator.gt,
    FilterOperation.GREATER_THAN_EQUAL: operator.ge,
    FilterOperation.LESS_THAN: operator.lt,
    FilterOperation.LESS_THAN_EQUAL: operator.le,
}

_EQUALITY = {
    FilterOperation.EQUALS: operator.eq,
    FilterOperation.NOT_EQUALS: operator.ne,
}

_NEGATED_MATCHES = {FilterOperation.NOT_EQUALS, FilterOperation.NOT_CONTAINS}


# ---- Value parsing -------------------------------------------------------------------


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _parse_date(value: str) -> date | None:
    raw = value.strip()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        return None


def _parse_number(value: str) -> Decimal | None:
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def parse_comparable(attribute: str, value: str) -> date | Decimal | None:
    """Dates for attributes whose name contains "Date", numbers for everything else."""
    if "Date" in attribute:
        return _parse_date(value)
    return _parse_number(value)


# ---- Column-level predicates ---------------------------------------------------------


def _text_match(column: Any, operation: FilterOperation, value: str) -> Predicate | None:
    """Equality and case-insensitive pattern matches on a text column."""
    pattern = _escape_like(value)
    if operation is FilterOperation.EQUALS:
        return column == value
    if operation is FilterOperation.NOT_EQUALS:
        return column != value
    if operation is FilterOperation.CONTAINS:
        return column.ilike(f"%{pattern}%", escape="\\")
    if operation is FilterOperation.NOT_CONTAINS:
        return not_(column.ilike(f"%{pattern}%", escape="\\"))
    if operation is FilterOperation.STARTS_WITH:
        return column.ilike(f"{pattern}%", escape="\\")
    if operation is FilterOperation.ENDS_WITH:
        return column.ilike(f"%{pattern}", escape="\\")
    return None


def _emptiness(column: Any, operation: FilterOperation, *, text: bool) -> Predicate | None:
    if operation is FilterOperation.IS_EMPTY:
        return or_(column.is_(None), column == "") if text else column.is_(None)
    if operation is FilterOperation.IS_NOT_EMPTY:
        return and_(column.is_not(None), column != "") if text else column.is_not(None)
    return None


def _bind(parsed: date | Decimal) -> date | int | float:
    # sqlite3 cannot bind Decimal against Integer columns.
    if isinstance(parsed, Decimal):
        return int(parsed) if parsed == parsed.to_integral_value() else float(parsed)
    return parsed


def _text_field(column: Any, attribute: FilterAttribute) -> PredicateBuilder:
    def build(operation: FilterOperation, value: str) -> Predicate | None:
        if operation in _COMPARISONS:
            # Comparison on a text column: the value still has to parse.
            parsed = parse_comparable(attribute.value, value)
            if parsed is None:
                return true()
            return _COMPARISONS[operation](column, _bind(parsed))

        match = _text_match(column, operation, value)
        if match is not None:
            return match
        return _emptiness(column, operation, text=True)

    return build


def _comparable_field(column: Any, attribute: FilterAttribute) -> PredicateBuilder:
    """Date and number columns: equality and ordering on the parsed value."""

    def build(operation: FilterOperation, value: str) -> Predicate | None:
        empty = _emptiness(column, operation, text=False)
        if empty is not None:
            return empty

        compare = _COMPARISONS.get(operation) or _EQUALITY.get(operation)
        if compare is None:
            return None

        parsed = parse_comparable(attribute.value, value)
        if parsed is None:
            logger.debug("Ignoring unparseable filter value attribute=%s value=%r", attribute.value, value)
            return true()
        return compare(column, _bind(parsed))

    return build


# ---- Virtual attributes --------------------------------------------------------------


def _name(operation: FilterOperation, value: str) -> Predicate | None:
    first = _text_match(Employee.first_name, operation, value)
    last = _text_match(Employee.last_name, operation, value)
    if first is None or last is None:
        return None
    if operation in _NEGATED_MATCHES:
        return and_(first, last)
    return or_(first, last)


def _salary(operation: FilterOperation, value: str) -> Predicate | None:
    """Only the current active salary counts; history is ignored."""
    active = Salary.is_active.is_(True)

    if operation is FilterOperation.IS_EMPTY:
        return not_(Employee.salaries.any(active))
    if operation is FilterOperation.IS_NOT_EMPTY:
        return Employee.salaries.any(active)

    compare = _COMPARISONS.get(operation) or _EQUALITY.get(operation)
    if compare is None:
        return None

    amount = _parse_number(value)
    if amount is None:
        return true()
    return Employee.salaries.any(and_(active, compare(Salary.basic_salary, amount)))


def _related_text(relationship: Any, column: Any) -> PredicateBuilder:
    def build(operation: FilterOperation, value: str) -> Predicate | None:
        condition = _text_match(column, operation, value)
        if condition is None:
            return None
        return relationship.has(condition)

    return build


def _is_active(operation: FilterOperation, value: str) -> Predicate | None:
    flag = value.strip().lower() == "true"
    compare = _EQUALITY.get(operation)
    if compare is None:
        return None
    return compare(Employee.is_active, flag)


_BUILDERS: dict[FilterAttribute, PredicateBuilder] = {
    FilterAttribute.FIRST_NAME: _text_field(Employee.first_name, FilterAttribute.FIRST_NAME),
    FilterAttribute.LAST_NAME: _text_field(Employee.last_name, FilterAttribute.LAST_NAME),
    FilterAttribute.EMAIL: _text_field(Employee.email, FilterAttribute.EMAIL),
    FilterAttribute.PHONE: _text_field(Employee.phone, FilterAttribute.PHONE),
    FilterAttribute.HIRE_DATE: _comparable_field(Employee.hire_date, FilterAttribute.HIRE_DATE),
    FilterAttribute.DEPARTMENT_ID: _comparable_field(Employee.department_id, FilterAttribute.DEPARTMENT_ID),
    FilterAttribute.POSITION_ID: _comparable_field(Employee.position_id, FilterAttribute.POSITION_ID),
    FilterAttribute.NAME: _name,
    FilterAttribute.SALARY: _salary,
    FilterAttribute.DEPARTMENT_NAME: _related_text(Employee.department, Department.name),
    FilterAttribute.POSITION_TITLE: _related_text(Employee.position, Position.title),
    FilterAttribute.IS_ACTIVE: _is_active,
}


# ---- Public API ----------------------------------------------------------------------


def _unsupported(condition: FilterCondition, strict: bool) -> Predicate:
    if strict:
        raise UnsupportedFilterError(condition.attribute, condition.operation)
    logger.warning(
        "Dropping unsupported filter attribute=%s operation=%s (matches everything)",
        condition.attribute,
        condition.operation,
    )
    return true()


def build_condition(condition: FilterCondition, *, strict: bool = False) -> Predicate:
    """Predicate for a single condition."""
    try:
        attribute = FilterAttribute(condition.attribute)
        operation = FilterOperation(condition.operation)
    except ValueError:
        return _unsupported(condition, strict)

    predicate = _BUILDERS[attribute](operation, condition.value)
    if predicate is None:
        return _unsupported(condition, strict)
    return predicate


def build_employee_predicate(conditions: Iterable[FilterCondition], *, strict: bool = False) -> Predicate:
    """AND of every condition; an empty list matches all employees."""
    predicates = [build_condition(c, strict=strict) for c in conditions]
    if not predicates:
        return true()
    return and_(*predicates)
