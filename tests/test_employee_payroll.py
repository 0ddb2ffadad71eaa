from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import ConflictError, LedgerUnavailableError
from app.models import Attendance, Employee, EmployeeAdvance, EmployeeSalary
from app.schemas.employee_payroll import (
    EmployeeAdvanceCreate,
    EmployeeSalaryCreate,
    EmployeeSalaryUpdate,
)
from app.services import employee_payroll_service as service

# April 2024 has 30 days; generation runs as of mid-May so April is a past month
TODAY = date(2024, 5, 15)


def _mark(db, employee, statuses, start=date(2024, 4, 1)):
    for offset, status in enumerate(statuses):
        db.add(Attendance(
            person_type="employee", person_id=employee.id,
            date=start + timedelta(days=offset), status=status,
        ))
    db.commit()


def _full_month(absent=0, leave=0, days=30):
    return ["absent"] * absent + ["leave"] * leave + ["present"] * (days - absent - leave)


def _outcome(report, employee):
    return next(r for r in report.results if r.employee_id == employee.id)


# --- Gross pay ---

def test_calculate_gross_salary():
    assert service.calculate_gross_salary(Decimal("30000"), 3, 30) == Decimal("27000")
    assert service.calculate_gross_salary(Decimal("31000"), 1, 31) == Decimal("30000")
    assert service.calculate_gross_salary(Decimal("1000"), 40, 30) == Decimal("0")


def test_generation_deducts_absences_only(db_session, make_employee):
    emp = make_employee(base_salary="30000")
    _mark(db_session, emp, _full_month(absent=3, leave=2))

    report = service.auto_generate_employee_salary(db_session, month=4, year=2024, today=TODAY)

    outcome = _outcome(report, emp)
    assert outcome.status == "created"
    assert outcome.summary.absent == 3
    assert outcome.summary.leave == 2
    assert outcome.attendance_incomplete is False
    row = db_session.query(EmployeeSalary).one()
    assert row.salary_month == "2024-04"
    assert row.gross_salary == Decimal("27000")
    assert row.net_salary == Decimal("27000")
    assert report.created == 1


def test_generation_is_idempotent_and_keeps_manual_advance(db_session, make_employee):
    emp = make_employee(base_salary="30000")
    _mark(db_session, emp, _full_month(absent=3))
    service.auto_generate_employee_salary(db_session, month=4, year=2024, today=TODAY)
    row = db_session.query(EmployeeSalary).one()
    row.advance = Decimal("2000")
    db_session.commit()

    report = service.auto_generate_employee_salary(db_session, month=4, year=2024, today=TODAY)

    assert _outcome(report, emp).status == "updated"
    assert db_session.query(EmployeeSalary).count() == 1
    assert row.gross_salary == Decimal("27000")
    assert row.net_salary == Decimal("25000")


def test_generation_never_touches_paid_rows(db_session, make_employee):
    emp = make_employee(base_salary="30000")
    service.create_employee_salary(db_session, EmployeeSalaryCreate(
        employee_id=emp.id, salary_month="2024-04", gross_salary=Decimal("30000"),
        net_salary=Decimal("30000"), paid=True,
    ))
    _mark(db_session, emp, _full_month(absent=10))

    report = service.auto_generate_employee_salary(db_session, month=4, year=2024, today=TODAY)

    outcome = _outcome(report, emp)
    assert outcome.status == "skipped"
    assert outcome.reason == "Salary already paid — cannot update"
    assert report.skipped == 1
    row = db_session.query(EmployeeSalary).one()
    assert row.gross_salary == Decimal("30000")


def test_generation_flags_incomplete_attendance(db_session, make_employee):
    partial = make_employee("Partial")
    _mark(db_session, partial, ["present"] * 3)

    report = service.auto_generate_employee_salary(db_session, month=4, year=2024, today=TODAY)

    outcome = _outcome(report, partial)
    assert outcome.attendance_incomplete is True
    assert outcome.salary.gross_salary == Decimal("30000")


def test_current_month_expects_only_elapsed_days(db_session, make_employee):
    emp = make_employee()
    _mark(db_session, emp, ["present"] * 15, start=date(2024, 5, 1))

    report = service.auto_generate_employee_salary(db_session, month=5, year=2024, today=TODAY)

    assert _outcome(report, emp).attendance_incomplete is False


def test_generation_skips_inactive_and_isolates_failures(db_session, make_employee, monkeypatch):
    ok = make_employee("Asha")
    broken = make_employee("Bina")
    make_employee("Chitra", is_active=False)
    real_summary = service.get_monthly_attendance_summary

    def summary(db, employee_id, month, year):
        if employee_id == broken.id:
            return None
        return real_summary(db, employee_id, month, year)

    monkeypatch.setattr(service, "get_monthly_attendance_summary", summary)

    report = service.auto_generate_employee_salary(db_session, month=4, year=2024, today=TODAY)

    assert len(report.results) == 2
    assert _outcome(report, ok).status == "created"
    failed = _outcome(report, broken)
    assert failed.status == "failed"
    assert failed.error == "Attendance summary not found"
    assert report.failed == 1


def test_generation_fails_when_employees_unreadable(db_session, make_employee, break_reads):
    make_employee()
    break_reads(Employee)

    with pytest.raises(LedgerUnavailableError):
        service.auto_generate_employee_salary(db_session, month=4, year=2024, today=TODAY)


# --- Salary rows ---

def test_duplicate_salary_month_is_a_conflict(db_session, make_employee):
    emp = make_employee()
    payload = EmployeeSalaryCreate(employee_id=emp.id, salary_month=date(2024, 4, 20))
    service.create_employee_salary(db_session, payload)

    with pytest.raises(ConflictError) as exc:
        service.create_employee_salary(db_session, payload)

    assert exc.value.message == "A salary for this employee and month already exists."
    assert db_session.query(EmployeeSalary).count() == 1


def test_paid_salary_money_is_frozen(db_session, make_employee):
    emp = make_employee()
    row = service.create_employee_salary(db_session, EmployeeSalaryCreate(
        employee_id=emp.id, salary_month="2024-04", gross_salary=Decimal("30000"), paid=True,
    ))

    with pytest.raises(ConflictError):
        service.update_employee_salary(db_session, row.id, EmployeeSalaryUpdate(gross_salary=Decimal("1")))

    updated = service.update_employee_salary(db_session, row.id, EmployeeSalaryUpdate(employee_name="Meena K"))
    assert updated.employee_name == "Meena K"


def test_mark_paid_and_list_paid_ids(db_session, make_employee):
    paid = make_employee("Asha")
    unpaid = make_employee("Bina")
    row = service.create_employee_salary(db_session, EmployeeSalaryCreate(employee_id=paid.id, salary_month="2024-04"))
    service.create_employee_salary(db_session, EmployeeSalaryCreate(employee_id=unpaid.id, salary_month="2024-04"))

    service.mark_employee_salaries_paid(db_session, [row.id], paid_by="accounts")

    assert service.get_paid_employee_ids_for_month(db_session, 4, 2024) == [paid.id]
    assert service.get_paid_employee_ids_for_month(db_session, 5, 2024) == []


# --- Read-time advances ---

def test_view_adds_ledger_advances_for_the_salary_month(db_session, make_employee):
    emp = make_employee()
    service.create_employee_salary(db_session, EmployeeSalaryCreate(
        employee_id=emp.id, salary_month="2024-04-15", gross_salary=Decimal("27000"),
        advance=Decimal("500"), net_salary=Decimal("1"),
    ))
    db_session.add_all([
        EmployeeAdvance(employee_id=emp.id, amount=Decimal("1000"), date=date(2024, 4, 3)),
        EmployeeAdvance(employee_id=emp.id, amount=Decimal("500"), date=date(2024, 4, 28)),
        EmployeeAdvance(employee_id=emp.id, amount=Decimal("300"), date=date(2024, 5, 1)),
    ])
    db_session.commit()

    view = service.get_employee_salaries(db_session)[0]

    assert view.stored_advance == Decimal("500")
    assert view.ledger_advance == Decimal("1500")
    assert view.advance == Decimal("2000")
    assert view.net_salary == Decimal("25000")


def test_unparseable_month_falls_back_to_creation_date(db_session, make_employee):
    emp = make_employee()
    db_session.add(EmployeeSalary(
        employee_id=emp.id, salary_month="April", gross_salary=Decimal("100"),
        created_at=datetime(2024, 2, 3, 10, 0),
    ))
    db_session.add(EmployeeAdvance(employee_id=emp.id, amount=Decimal("40"), date=date(2024, 2, 10)))
    db_session.commit()

    view = service.get_employee_salaries(db_session)[0]

    assert view.month == date(2024, 2, 3)
    assert view.net_salary == Decimal("60")


def test_unreadable_advances_leave_stored_advance(db_session, make_employee, break_reads):
    emp = make_employee()
    service.create_employee_salary(db_session, EmployeeSalaryCreate(
        employee_id=emp.id, salary_month="2024-04", gross_salary=Decimal("1000"), advance=Decimal("100"),
    ))
    db_session.add(EmployeeAdvance(employee_id=emp.id, amount=Decimal("50"), date=date(2024, 4, 2)))
    db_session.commit()
    break_reads(EmployeeAdvance)

    view = service.get_employee_salaries(db_session)[0]

    assert view.advance == Decimal("100")
    assert view.net_salary == Decimal("900")


def test_advance_creates_missing_salary_row(db_session, make_employee):
    emp = make_employee(base_salary="30000")

    service.add_employee_advance(db_session, EmployeeAdvanceCreate(
        employee_id=emp.id, amount=Decimal("1000"), date=date(2024, 4, 9)
    ))
    service.add_employee_advance(db_session, EmployeeAdvanceCreate(
        employee_id=emp.id, amount=Decimal("500"), date=date(2024, 4, 20)
    ))

    row = db_session.query(EmployeeSalary).one()
    assert row.salary_month == "2024-04"
    assert row.gross_salary == Decimal("30000")
    view = service.get_employee_salaries(db_session)[0]
    assert view.net_salary == Decimal("28500")


def test_impossible_salary_month_does_not_break_the_list(db_session, make_employee):
    emp = make_employee()
    db_session.add(EmployeeSalary(
        employee_id=emp.id, salary_month="2024-02-31", gross_salary=Decimal("100"),
        created_at=datetime(2024, 3, 5, 8, 0),
    ))
    db_session.commit()

    views = service.get_employee_salaries(db_session)

    assert [v.month for v in views] == [date(2024, 3, 5)]
