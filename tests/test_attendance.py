from datetime import date

from app.models import Attendance
from app.services import attendance_service


def _row(person_id, day, status, **extra):
    return {"person_type": "employee", "person_id": person_id, "date": day, "status": status, **extra}


def test_leap_february_summary(db_session, make_employee):
    emp = make_employee()
    attendance_service.upsert_attendance_bulk(db_session, [
        _row(emp.id, date(2024, 2, 1), "present"),
        _row(emp.id, date(2024, 2, 29), "absent"),
        _row(emp.id, date(2024, 3, 1), "absent"),
    ])

    summary = attendance_service.get_monthly_attendance_summary(db_session, emp.id, 2, 2024)

    assert summary.total_days == 29
    assert summary.present == 1
    assert summary.absent == 1
    assert summary.marked_days == 2
    assert summary.percentage == 1 / 29


def test_unknown_statuses_are_ignored(db_session, make_employee):
    emp = make_employee()
    db_session.add_all([
        Attendance(person_type="employee", person_id=emp.id, date=date(2024, 4, 1), status="half-day"),
        Attendance(person_type="employee", person_id=emp.id, date=date(2024, 4, 2), status="leave"),
        Attendance(person_type="worker", person_id=emp.id, date=date(2024, 4, 3), status="absent"),
    ])
    db_session.commit()

    summary = attendance_service.get_monthly_attendance_summary(db_session, emp.id, 4, 2024)

    assert (summary.present, summary.absent, summary.leave) == (0, 0, 1)
    assert summary.marked_days == 1


def test_summary_is_none_when_rows_unreadable(db_session, make_employee, break_reads):
    emp = make_employee()
    break_reads(Attendance)

    assert attendance_service.get_monthly_attendance_summary(db_session, emp.id, 4, 2024) is None


def test_upsert_overwrites_same_person_day(db_session, make_employee):
    emp = make_employee()
    day = date(2024, 4, 5)
    attendance_service.upsert_attendance_bulk(db_session, [_row(emp.id, day, "absent")])

    stored = attendance_service.upsert_attendance_bulk(
        db_session, [_row(emp.id, day, "present", marked_by="hr")]
    )

    assert [(r.status, r.marked_by) for r in stored] == [("present", "hr")]
    assert db_session.query(Attendance).count() == 1
    assert [r.status for r in attendance_service.get_attendance_by_date(db_session, day)] == ["present"]


def test_upsert_last_row_wins_within_a_batch(db_session, make_employee):
    emp = make_employee()
    day = date(2024, 4, 5)

    stored = attendance_service.upsert_attendance_bulk(db_session, [
        _row(emp.id, day, "absent"),
        _row(emp.id, day, "leave"),
    ])

    assert [r.status for r in stored] == ["leave"]


def test_active_employees_only(db_session, make_employee):
    make_employee("Zoya")
    make_employee("Anil")
    make_employee("Old Hand", is_active=False)

    names = [e.name for e in attendance_service.get_active_employees(db_session)]

    assert names == ["Anil", "Zoya"]
