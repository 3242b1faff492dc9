from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from employee_records.db.session import get_db
from employee_records.schemas.hr import SalaryPage
from employee_records.services import salaries as salary_service
from employee_records.settings import Settings, get_app_settings

router = APIRouter(prefix="/salaries", tags=["salaries"])


@router.get("", response_model=SalaryPage)
def list_salaries(
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=1900, le=9999),
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    # Without both month and year this is the current snapshot.
    result = salary_service.list_salary_snapshots(
        db,
        month=month,
        year=year,
        page=page,
        page_size=page_size or settings.default_page_size,
    )
    if result.error:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=SalaryPage(error=result.error).model_dump(mode="json", by_alias=True),
        )
    return result


@router.get("/export.csv")
def export_salaries(
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=1900, le=9999),
    db: Session = Depends(get_db),
) -> Response:
    result = salary_service.list_salary_snapshots(db, month=month, year=year, page_size=None)
    if result.error:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error)

    filename = salary_service.export_filename(month, year)
    return Response(
        content=salary_service.export_salaries_csv(result.data),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
