import os
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_PER_MINUTE"] = "10000"

from app.database import Base, get_db
from app.main import app
from app.models import (
    Employee,
    Operation,
    Product,
    Production,
    ProductionOperation,
    Worker,
    WorkerSalary,
)
from fastapi.testclient import TestClient

WORK_DAY = date(2024, 3, 12)


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory ledger per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(scope="function")
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
def product(db_session):
    product = Product(name="Cotton Shirt")
    db_session.add(product)
    db_session.commit()
    return product

@pytest.fixture(scope="function")
def operation(db_session, product):
    """Sleeve stitching at 5 per piece."""
    op = Operation(name="Sleeve Stitching", amount_per_piece=Decimal("5"), product_id=product.id)
    db_session.add(op)
    db_session.commit()
    return op

@pytest.fixture(scope="function")
def production(db_session, product):
    batch = Production(product_id=product.id, total_quantity=500)
    db_session.add(batch)
    db_session.commit()
    return batch

@pytest.fixture(scope="function")
def make_worker(db_session):
    def _make_worker(name="Ravi"):
        worker = Worker(name=name)
        db_session.add(worker)
        db_session.commit()
        return worker
    return _make_worker

@pytest.fixture(scope="function")
def worker(make_worker):
    return make_worker("Ravi")

@pytest.fixture(scope="function")
def make_employee(db_session):
    def _make_employee(name="Meena", base_salary="30000", is_active=True):
        emp = Employee(name=name, base_salary=Decimal(base_salary), is_active=is_active)
        db_session.add(emp)
        db_session.commit()
        return emp
    return _make_employee

@pytest.fixture(scope="function")
def log_work(db_session, production, operation):
    """Insert a raw production row (no salary mirror)."""
    def _log_work(worker, pieces=10, day=WORK_DAY, op=None):
        op = op or operation
        row = ProductionOperation(
            production_id=production.id,
            operation_id=op.id,
            worker_id=worker.id,
            worker_name=worker.name,
            pieces_done=pieces,
            earnings=Decimal(op.amount_per_piece) * pieces,
            date=day,
            entered_by="supervisor",
        )
        db_session.add(row)
        db_session.commit()
        return row
    return _log_work

@pytest.fixture(scope="function")
def add_salary(db_session, product, operation):
    """Insert a salary line directly."""
    def _add_salary(worker, pieces=10, day=WORK_DAY, paid=False, op=None):
        op = op or operation
        row = WorkerSalary(
            worker_id=worker.id,
            product_id=product.id,
            operation_id=op.id,
            pieces_done=pieces,
            amount_per_piece=op.amount_per_piece,
            total_amount=Decimal(op.amount_per_piece) * pieces,
            date=day,
            paid=paid,
            entered_by="supervisor",
        )
        db_session.add(row)
        db_session.commit()
        return row
    return _add_salary

@pytest.fixture(scope="function")
def break_reads(db_session, monkeypatch):
    """Make session.query fail for the given models, as an unreachable table would."""
    def _break_reads(*models):
        original = db_session.query

        def query(*entities, **kwargs):
            if entities and entities[0] in models:
                raise OperationalError("SELECT", {}, Exception("ledger table unavailable"))
            return original(*entities, **kwargs)

        monkeypatch.setattr(db_session, "query", query)
    return _break_reads
