"""
Employee Payroll Service Layer

Monthly salaries for salaried employees:
- the generator derives gross pay from base salary and absences, one row per
  employee per month, and never touches a row once it is paid
- the read side adds ledger advances for the row's month to the stored manual
  advance and recomputes net pay on every read
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AppException,
    ConflictError,
    LedgerUnavailableError,
    NotFoundError,
    ValidationFailedError,
)
from app.core.periods import (
    coerce_salary_month,
    days_in_month,
    format_month,
    month_key,
    parse_salary_month,
)
from app.models.employee import Employee
from app.models.employee_salary import EmployeeAdvance, EmployeeSalary
from app.schemas.employee_payroll import (
    EmployeeAdvanceCreate,
    EmployeeSalaryCreate,
    EmployeeSalaryRecord,
    EmployeeSalaryUpdate,
    EmployeeSalaryView,
    SalaryGenerationReport,
    SalaryOutcome,
)
from app.services.attendance_service import get_monthly_attendance_summary
from app.services.reconciliation import ZERO, as_decimal, is_uuid

logger = logging.getLogger(__name__)

DUPLICATE_SALARY_MESSAGE = "A salary for this employee and month already exists."
ALREADY_PAID_REASON = "Salary already paid — cannot update"

_MONEY_FIELDS = ("gross_salary", "advance", "net_salary")


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"{action} rejected by unique constraint: {e.orig}")
        raise ConflictError(DUPLICATE_SALARY_MESSAGE) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{action} failed: {e}")
        raise LedgerUnavailableError(f"{action} failed") from e


# ============================================================================
# MASTER DATA
# ============================================================================

def get_employees(db: Session) -> List[Employee]:
    try:
        return db.query(Employee).order_by(Employee.name).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"get_employees failed: {e}")
        return []


# ============================================================================
# SALARY ROWS
# ============================================================================

def create_employee_salary(db: Session, payload: EmployeeSalaryCreate) -> EmployeeSalary:
    """
    Insert a salary row for (employee, month).

    Raises:
        ConflictError: a row already exists for that employee and month
    """
    try:
        salary_month = coerce_salary_month(payload.salary_month)
    except ValueError as e:
        raise ValidationFailedError(str(e)) from e

    row = EmployeeSalary(
        employee_id=payload.employee_id,
        salary_month=salary_month,
        gross_salary=payload.gross_salary,
        advance=payload.advance,
        net_salary=payload.net_salary,
        paid=payload.paid,
        paid_date=payload.paid_date,
        employee_name=payload.employee_name,
    )
    db.add(row)
    _commit(db, f"Creating salary for {payload.employee_id} {salary_month}")
    db.refresh(row)
    return row


def update_employee_salary(db: Session, salary_id: str, updates: EmployeeSalaryUpdate) -> EmployeeSalary:
    """Edit a salary row; money fields are frozen once the row is paid."""
    if not salary_id:
        raise ValidationFailedError("Missing id")

    row = db.get(EmployeeSalary, salary_id)
    if row is None:
        raise NotFoundError(f"Salary {salary_id} not found")

    changes = updates.model_dump(exclude_unset=True)
    if row.paid and any(changes.get(f) is not None for f in _MONEY_FIELDS):
        raise ConflictError(ALREADY_PAID_REASON)

    if changes.get("salary_month") is not None:
        try:
            changes["salary_month"] = coerce_salary_month(changes["salary_month"])
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e

    for field, value in changes.items():
        if value is not None:
            setattr(row, field, value)

    _commit(db, f"Updating salary {salary_id}")
    db.refresh(row)
    return row


def mark_employee_salaries_paid(
    db: Session,
    ids: List[str],
    paid_by: Optional[str] = None
) -> List[EmployeeSalary]:
    if not ids:
        raise ValidationFailedError("No target provided for update")
    invalid = [i for i in ids if not is_uuid(i)]
    if invalid:
        raise ValidationFailedError("Salary ids must be UUIDs", details={"invalid_ids": invalid})

    try:
        rows = db.query(EmployeeSalary).filter(EmployeeSalary.id.in_(ids)).all()
    except SQLAlchemyError as e:
        db.rollback()
        raise LedgerUnavailableError("Failed to load employee salaries") from e

    paid_at = datetime.now(timezone.utc)
    for row in rows:
        if row.paid:
            continue
        row.paid = True
        row.paid_date = paid_at
        if paid_by:
            row.paid_by = paid_by
    _commit(db, "Marking employee salaries paid")
    return rows


def get_paid_employee_ids_for_month(db: Session, month: int, year: int) -> List[str]:
    try:
        rows = db.query(EmployeeSalary.employee_id).filter(
            EmployeeSalary.salary_month == format_month(month, year),
            EmployeeSalary.paid.is_(True)
        ).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"get_paid_employee_ids_for_month failed: {e}")
        return []
    return [r.employee_id for r in rows]


# ============================================================================
# READ-TIME AGGREGATION
# ============================================================================

def aggregate_employee_advances(rows: Iterable[EmployeeAdvance]) -> Dict[Tuple[str, str], Decimal]:
    """Sum ledger advances per (employee_id, "YYYY-MM")."""
    totals: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: ZERO)
    for adv in rows:
        key = month_key(adv.date)
        if not adv.employee_id or key is None:
            continue
        totals[(adv.employee_id, key)] += as_decimal(adv.amount)
    return dict(totals)


def build_employee_salary_view(
    row: EmployeeSalary,
    advance_totals: Dict[Tuple[str, str], Decimal]
) -> EmployeeSalaryView:
    month_date = parse_salary_month(row.salary_month, row.created_at) or date.today()
    ledger_advance = advance_totals.get(
        (row.employee_id, format_month(month_date.month, month_date.year)), ZERO
    )
    stored_advance = as_decimal(row.advance)
    total_advance = stored_advance + ledger_advance
    gross = as_decimal(row.gross_salary)

    return EmployeeSalaryView(
        id=row.id,
        employee_id=row.employee_id,
        employee_name=row.employee_name,
        salary_month=row.salary_month,
        month=month_date,
        gross_salary=gross,
        stored_advance=stored_advance,
        ledger_advance=ledger_advance,
        advance=total_advance,
        net_salary=gross - total_advance,
        paid=bool(row.paid),
        paid_date=row.paid_date,
        paid_by=row.paid_by,
    )


def get_employee_salaries(db: Session) -> List[EmployeeSalaryView]:
    """
    Salary rows with effective advance and net pay. Stored net_salary is
    ignored; advances are supplementary and degrade to zero if unreadable.
    """
    try:
        rows = db.query(EmployeeSalary).order_by(EmployeeSalary.created_at.desc()).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to fetch employee salaries: {e}")
        raise LedgerUnavailableError("Failed to load employee salaries") from e

    try:
        advances = db.query(EmployeeAdvance).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to fetch employee advances: {e}")
        advances = []

    totals = aggregate_employee_advances(advances)
    return [build_employee_salary_view(r, totals) for r in rows]


# ============================================================================
# GENERATOR
# ============================================================================

def calculate_gross_salary(base_salary: Decimal, absent_days: int, calendar_days: int) -> Decimal:
    """Base pay less one day's pay per absence, floored at zero and rounded to whole units."""
    daily_salary = as_decimal(base_salary) / calendar_days
    deduction = absent_days * daily_salary
    return max(ZERO, as_decimal(base_salary) - deduction).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def _generate_for_employee(
    db: Session,
    emp: Employee,
    month: int,
    year: int,
    today: date
) -> SalaryOutcome:
    salary_month = format_month(month, year)
    calendar_days = days_in_month(month, year)

    summary = get_monthly_attendance_summary(db, emp.id, month, year)
    if summary is None:
        return SalaryOutcome(
            employee_id=emp.id, employee=emp.name,
            status="failed", error="Attendance summary not found"
        )

    # Informational only: past months expect every day marked, the current
    # month only the days elapsed so far.
    expected_days = calendar_days
    if (year, month) == (today.year, today.month):
        expected_days = today.day
    attendance_incomplete = summary.marked_days < expected_days

    gross_salary = calculate_gross_salary(emp.base_salary, summary.absent, calendar_days)

    existing = db.query(EmployeeSalary).filter(
        EmployeeSalary.employee_id == emp.id,
        EmployeeSalary.salary_month == salary_month
    ).first()

    if existing is not None and existing.paid:
        return SalaryOutcome(
            employee_id=emp.id, employee=emp.name,
            status="skipped", reason=ALREADY_PAID_REASON,
            summary=summary, attendance_incomplete=attendance_incomplete,
            salary=EmployeeSalaryRecord.model_validate(existing),
        )

    if existing is not None:
        existing.gross_salary = gross_salary
        existing.net_salary = gross_salary - as_decimal(existing.advance)
        _commit(db, f"Updating salary for {emp.id} {salary_month}")
        db.refresh(existing)
        return SalaryOutcome(
            employee_id=emp.id, employee=emp.name,
            status="updated", summary=summary,
            attendance_incomplete=attendance_incomplete,
            salary=EmployeeSalaryRecord.model_validate(existing),
        )

    created = create_employee_salary(db, EmployeeSalaryCreate(
        employee_id=emp.id,
        salary_month=salary_month,
        gross_salary=gross_salary,
        advance=ZERO,
        net_salary=gross_salary,
        paid=False,
        employee_name=emp.name,
    ))
    return SalaryOutcome(
        employee_id=emp.id, employee=emp.name,
        status="created", summary=summary,
        attendance_incomplete=attendance_incomplete,
        salary=EmployeeSalaryRecord.model_validate(created),
    )


def auto_generate_employee_salary(
    db: Session,
    month: Optional[int] = None,
    year: Optional[int] = None,
    today: Optional[date] = None
) -> SalaryGenerationReport:
    """
    Create or refresh the unpaid salary row of every active employee for a month.

    Args:
        db: Database session
        month: Target month (1-12), defaults to the current month
        year: Target year, defaults to the current year
        today: Reference day for the attendance completeness check

    Returns:
        Per-employee outcomes; one employee failing never stops the others

    Raises:
        LedgerUnavailableError: the employee list itself could not be read
    """
    today = today or date.today()
    month = month or today.month
    year = year or today.year
    report = SalaryGenerationReport(salary_month=format_month(month, year))

    try:
        employees = db.query(Employee).all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to fetch employees for salary generation: {e}")
        raise LedgerUnavailableError("Failed to load employees") from e

    for emp in employees:
        if not emp.is_active:
            continue
        try:
            outcome = _generate_for_employee(db, emp, month, year, today)
        except (AppException, SQLAlchemyError) as e:
            db.rollback()
            message = e.message if isinstance(e, AppException) else str(e)
            logger.warning(f"Salary generation failed for {emp.id}: {message}")
            outcome = SalaryOutcome(employee_id=emp.id, employee=emp.name, status="failed", error=message)

        report.results.append(outcome)
        if outcome.status == "created":
            report.created += 1
        elif outcome.status == "updated":
            report.updated += 1
        elif outcome.status == "skipped":
            report.skipped += 1
        else:
            report.failed += 1

    logger.info(
        f"Salary generation {report.salary_month}: {report.created} created, "
        f"{report.updated} updated, {report.skipped} skipped, {report.failed} failed"
    )
    return report


# ============================================================================
# ADVANCES
# ============================================================================

def add_employee_advance(db: Session, payload: EmployeeAdvanceCreate) -> EmployeeAdvance:
    """
    Record an employee advance. If the employee has no salary row for the
    advance's month yet, a base-salary-only unpaid row is created so the
    advance shows up in the aggregated view.
    """
    advance = EmployeeAdvance(
        employee_id=payload.employee_id,
        amount=payload.amount,
        date=payload.date,
        note=payload.note,
    )
    db.add(advance)
    _commit(db, "Adding employee advance")
    db.refresh(advance)

    salary_month = format_month(payload.date.month, payload.date.year)
    try:
        existing = db.query(EmployeeSalary).filter(
            EmployeeSalary.employee_id == payload.employee_id,
            EmployeeSalary.salary_month == salary_month
        ).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error checking employee salary on advance add: {e}")
        return advance

    if existing is None:
        emp = db.get(Employee, payload.employee_id)
        base = as_decimal(emp.base_salary) if emp is not None else ZERO
        try:
            create_employee_salary(db, EmployeeSalaryCreate(
                employee_id=payload.employee_id,
                salary_month=salary_month,
                gross_salary=base,
                advance=ZERO,
                net_salary=base,
                employee_name=emp.name if emp is not None else None,
            ))
        except AppException as e:
            logger.warning(f"Advance {advance.id} saved but salary row was not created: {e.message}")

    return advance
