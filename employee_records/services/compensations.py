from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from employee_records.models.hr import Compensation
from employee_records.schemas.forms import CompensationForm, CompensationResult
from employee_records.schemas.hr import CompensationOut
from employee_records.services.errors import TransactionFailure

logger = logging.getLogger(__name__)


def list_compensations(db: Session) -> list[CompensationOut]:
    """Active catalog entries, by name. Empty on database errors."""
    try:
        rows = db.scalars(
            select(Compensation).where(Compensation.is_active.is_(True)).order_by(Compensation.name)
        ).all()
    except SQLAlchemyError:
        logger.exception("Failed to list compensations")
        return []
    return [CompensationOut.model_validate(row) for row in rows]


def _insert_compensation(db: Session, data: CompensationForm) -> Compensation:
    compensation = Compensation(
        name=data.name,
        amount=data.amount,
        description=data.description,
        type=data.type,
        is_percentage=data.is_percentage,
        is_active=True,
    )
    try:
        db.add(compensation)
        db.commit()
    except SQLAlchemyError as exc:
        logger.exception("Failed to create compensation name=%s", data.name)
        raise TransactionFailure("Failed to create compensation. Please try again.") from exc
    return compensation


def create_compensation(db: Session, data: CompensationForm) -> CompensationResult:
    try:
        compensation = _insert_compensation(db, data)
    except TransactionFailure as exc:
        db.rollback()
        return CompensationResult(success=False, error=exc.message)

    logger.info("Compensation created id=%s type=%s", compensation.id, compensation.type.value)
    return CompensationResult(
        success=True,
        compensation=CompensationOut.model_validate(compensation),
        message="Compensation created successfully",
    )
