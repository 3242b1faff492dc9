from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from employee_records.db.session import get_db
from employee_records.schemas.forms import CompensationForm, CompensationResult
from employee_records.schemas.hr import CompensationOut
from employee_records.services import compensations as compensation_service

router = APIRouter(prefix="/compensations", tags=["compensations"])


@router.get("", response_model=list[CompensationOut])
def list_compensations(db: Session = Depends(get_db)) -> list[CompensationOut]:
    return compensation_service.list_compensations(db)


@router.post("", response_model=CompensationResult, status_code=status.HTTP_201_CREATED)
def create_compensation(
    form: CompensationForm,
    response: Response,
    db: Session = Depends(get_db),
) -> CompensationResult:
    result = compensation_service.create_compensation(db, form)
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return result
