from datetime import date
from decimal import Decimal

from app.models import WorkerSalary
from app.models._ids import new_uuid


def test_worker_feed_is_tagged_by_source(client, worker, log_work, add_salary):
    log_work(worker)
    add_salary(worker, day=date(2024, 3, 1))

    response = client.get("/api/workers/salaries")

    assert response.status_code == 200
    data = response.json()
    assert [e["source"] for e in data] == ["production", "salary"]
    assert Decimal(data[0]["total_amount"]) == Decimal("50")


def test_mark_paid_with_bad_ids_returns_error_envelope(client):
    response = client.post("/api/workers/salaries/mark-paid", json={"ids": ["42"]})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errors"][0]["code"] == "VALIDATION_FAILED"
    assert body["errors"][0]["details"] == {"invalid_ids": ["42"]}


def test_payments_report_per_item_errors(client, db_session, worker, log_work):
    work = log_work(worker)

    response = client.post("/api/workers/payments", json={
        "paid_by": "accounts",
        "items": [
            {"id": work.id, "source": "production"},
            {"id": "bogus", "source": "salary"},
            {"id": "5", "source": "advance"},
        ],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert body["skipped"] == 1
    assert [e["id"] for e in body["errors"]] == ["bogus"]
    assert db_session.query(WorkerSalary).filter(WorkerSalary.paid.is_(True)).count() == 1


def test_advance_amount_must_be_positive(client, worker):
    response = client.post("/api/workers/advances", json={
        "worker_id": worker.id, "amount": "0", "date": "2024-03-12",
    })

    assert response.status_code == 422
    assert response.json()["success"] is False


def test_delete_unknown_production_operation_is_404(client):
    response = client.delete("/api/workers/production-operations/missing")

    assert response.status_code == 404
    assert response.json()["errors"][0]["code"] == "NOT_FOUND"


def test_duplicate_employee_salary_is_409(client, make_employee):
    emp = make_employee()
    payload = {"employee_id": emp.id, "salary_month": "2024-04", "gross_salary": "30000"}

    assert client.post("/api/employees/salaries", json=payload).status_code == 200
    response = client.post("/api/employees/salaries", json=payload)

    assert response.status_code == 409
    assert response.json()["errors"][0]["msg"] == "A salary for this employee and month already exists."


def test_generate_and_list_employee_salaries(client, make_employee):
    emp = make_employee(base_salary="30000")
    client.put("/api/attendance", json={"rows": [
        {"person_id": emp.id, "date": "2024-04-02", "status": "absent"},
        {"person_id": emp.id, "date": "2024-04-03T09:15:00", "status": "present"},
    ]})

    report = client.post("/api/employees/salaries/generate", json={"month": 4, "year": 2024}).json()

    assert report["salary_month"] == "2024-04"
    assert report["created"] == 1
    assert report["results"][0]["attendance_incomplete"] is True

    salaries = client.get("/api/employees/salaries").json()
    assert Decimal(salaries[0]["gross_salary"]) == Decimal("29000")


def test_attendance_summary_endpoint(client, make_employee):
    emp = make_employee()
    client.put("/api/attendance", json={"rows": [
        {"person_id": emp.id, "date": "2024-02-29", "status": "leave"},
    ]})

    response = client.get(f"/api/attendance/summary/{emp.id}", params={"month": 2, "year": 2024})

    assert response.status_code == 200
    assert response.json()["total_days"] == 29
    assert response.json()["leave"] == 1

    by_date = client.get("/api/attendance", params={"date": "2024-02-29"}).json()
    assert [r["status"] for r in by_date] == ["leave"]


def test_dated_production_payments_isolate_failed_rate_lookup(client, db_session, worker, log_work):
    first = log_work(worker, pieces=10)
    second = log_work(worker, pieces=4)
    third = log_work(worker, pieces=2, day=date(2024, 3, 13))

    def item(row, operation_id=None):
        return {
            "id": row.id, "source": "production", "worker_id": worker.id,
            "operation_id": operation_id or row.operation_id,
            "pieces_done": row.pieces_done, "date": row.date.isoformat(),
        }

    response = client.post("/api/workers/payments", json={
        "paid_by": "accounts",
        "items": [item(first), item(second, operation_id=new_uuid()), item(third)],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 2
    assert [e["id"] for e in body["errors"]] == [second.id]
    lines = db_session.query(WorkerSalary).filter(WorkerSalary.paid.is_(True)).all()
    assert sorted(l.date for l in lines) == [date(2024, 3, 12), date(2024, 3, 13)]


def test_record_and_reassign_production_over_http(client, db_session, make_worker, production, operation):
    ravi = make_worker("Ravi")
    sita = make_worker("Sita")

    created = client.post("/api/workers/production-operations", json={
        "production_id": production.id, "operation_id": operation.id,
        "worker_id": ravi.id, "pieces_done": 10, "date": "2024-03-12",
    })
    assert created.status_code == 200
    assert created.json()["date"] == "2024-03-12"

    response = client.put(
        f"/api/workers/production-operations/{created.json()['id']}/assign",
        json={"worker_id": sita.id, "pieces_done": 12},
    )

    assert response.status_code == 200
    assert response.json()["salary_sync"] == "reassigned"
    assert [l.worker_id for l in db_session.query(WorkerSalary).all()] == [sita.id]
