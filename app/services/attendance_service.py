"""
Attendance Service Layer

Daily attendance marking and the monthly present/absent/leave summary used by
the employee salary generator.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import LedgerUnavailableError
from app.core.periods import days_in_month, month_bounds
from app.models._ids import new_uuid
from app.models.attendance import Attendance, AttendanceStatus, PersonType
from app.models.employee import Employee
from app.schemas.attendance import AttendanceSummary

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def get_active_employees(db: Session) -> List[Employee]:
    """Active employees ordered by name; empty on a failed read."""
    try:
        return db.query(Employee).filter(Employee.is_active.is_(True)).order_by(Employee.name).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"get_active_employees failed: {e}")
        return []


def get_attendance_by_date(db: Session, day: date, person_type: str = PersonType.EMPLOYEE.value) -> List[Attendance]:
    try:
        return db.query(Attendance).filter(
            Attendance.date == day,
            Attendance.person_type == person_type
        ).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"get_attendance_by_date failed for {day}: {e}")
        return []


def get_attendance_for_employee_in_range(
    db: Session,
    employee_id: str,
    start: date,
    end: date
) -> List[Attendance]:
    """Rows for one employee with start <= date <= end."""
    return db.query(Attendance).filter(
        Attendance.person_type == PersonType.EMPLOYEE.value,
        Attendance.person_id == employee_id,
        Attendance.date >= start,
        Attendance.date <= end
    ).all()


def upsert_attendance_bulk(db: Session, rows: List[Dict[str, Any]]) -> List[Attendance]:
    """
    Insert or overwrite attendance rows keyed on (person_type, person_id, date).

    Args:
        db: Database session
        rows: dicts with person_type, person_id, date, status and optional shift/marked_by

    Returns:
        The stored rows after the upsert
    """
    if not rows:
        return []

    dialect = db.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise LedgerUnavailableError(f"Attendance upsert is not supported on {dialect}")

    # Later rows for the same person/day win, as the store would apply them
    deduped: Dict[tuple, Dict[str, Any]] = {}
    for row in rows:
        values = {
            "person_type": row.get("person_type") or PersonType.EMPLOYEE.value,
            "person_id": row["person_id"],
            "date": row["date"],
            "status": row["status"],
            "shift": row.get("shift"),
            "marked_by": row.get("marked_by"),
        }
        deduped[(values["person_type"], values["person_id"], values["date"])] = values

    stmt = insert(Attendance).values([
        {"id": new_uuid(), **values} for values in deduped.values()
    ])
    stmt = stmt.on_conflict_do_update(
        index_elements=["person_type", "person_id", "date"],
        set_={
            "status": stmt.excluded.status,
            "shift": stmt.excluded.shift,
            "marked_by": stmt.excluded.marked_by,
        },
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"upsert_attendance_bulk failed: {e}")
        raise LedgerUnavailableError("Failed to save attendance") from e

    stored = []
    for person_type, person_id, day in deduped:
        stored.extend(db.execute(
            select(Attendance).where(
                Attendance.person_type == person_type,
                Attendance.person_id == person_id,
                Attendance.date == day,
            )
        ).scalars().all())
    return stored


def get_monthly_attendance_summary(
    db: Session,
    employee_id: str,
    month: int,
    year: int
) -> Optional[AttendanceSummary]:
    """
    Count present/absent/leave days for an employee over one calendar month.

    Days with no row count towards nothing; statuses other than the three
    known ones are ignored. Returns None when the rows cannot be read.
    """
    total_days = days_in_month(month, year)
    start, end = month_bounds(month, year)

    try:
        rows = get_attendance_for_employee_in_range(db, employee_id, start, end)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"get_monthly_attendance_summary failed for {employee_id} {year}-{month:02d}: {e}")
        return None

    present = sum(1 for r in rows if r.status == AttendanceStatus.PRESENT.value)
    absent = sum(1 for r in rows if r.status == AttendanceStatus.ABSENT.value)
    leave = sum(1 for r in rows if r.status == AttendanceStatus.LEAVE.value)

    return AttendanceSummary(
        total_days=total_days,
        present=present,
        absent=absent,
        leave=leave,
        percentage=present / total_days,
        marked_days=present + absent + leave,
    )
