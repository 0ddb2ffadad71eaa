from datetime import date
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.attendance import (
    ActiveEmployee,
    AttendanceBulkRequest,
    AttendanceRowOut,
    AttendanceSummary,
)
from app.services import attendance_service

router = APIRouter(
    prefix="/attendance",
    tags=["attendance"]
)


@router.get("/employees", response_model=List[ActiveEmployee])
def active_employees(db: Session = Depends(get_db)):
    return attendance_service.get_active_employees(db)


@router.get("", response_model=List[AttendanceRowOut])
def attendance_by_date(
    day: date = Query(..., alias="date"),
    person_type: Literal["employee", "worker"] = "employee",
    db: Session = Depends(get_db)
):
    return attendance_service.get_attendance_by_date(db, day, person_type)


@router.put("", response_model=List[AttendanceRowOut])
def mark_attendance(request: AttendanceBulkRequest, db: Session = Depends(get_db)):
    """
    Bulk mark attendance; re-marking the same person and day overwrites it.
    """
    return attendance_service.upsert_attendance_bulk(db, [r.model_dump() for r in request.rows])


@router.get("/summary/{employee_id}", response_model=AttendanceSummary)
def monthly_summary(
    employee_id: str,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    db: Session = Depends(get_db)
):
    summary = attendance_service.get_monthly_attendance_summary(db, employee_id, month, year)
    if summary is None:
        raise HTTPException(status_code=503, detail="Attendance could not be read for this month")
    return summary
