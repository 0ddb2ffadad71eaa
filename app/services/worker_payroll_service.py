"""
Worker Payroll Service Layer

Business logic for piece-rate worker pay. It reads salary lines, production
work and advances from the ledger, hands them to the reconciliation functions,
and performs the paid-state and sync writes.

Architecture:
- Router -> Service (this module) -> Models
- Merging/dedup rules live in app.services.reconciliation
- Primary reads raise LedgerUnavailableError; lookups and advances degrade to empty
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, List, Optional, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.exceptions import (
    AppException,
    LedgerUnavailableError,
    NotFoundError,
    ValidationFailedError,
)
from app.core.periods import month_bounds, next_month_start, normalize_day
from app.models.catalog import Operation, Product, Production
from app.models.production_operation import ProductionOperation
from app.models.worker import Worker
from app.models.worker_salary import WorkerAdvance, WorkerSalary
from app.schemas.worker_payroll import (
    AdvanceEntry,
    PaymentError,
    PaymentItem,
    PaymentResult,
    ProductionOperationCreate,
    WorkerAdvanceCreate,
    WorkerAssignmentResult,
    ProductionOperationRecord,
    WorkerMonthlySummary,
    WorkerSalaryCreate,
)
from app.services.reconciliation import (
    advance_to_entry,
    aggregate_by_worker,
    as_decimal,
    build_lookup,
    filter_month,
    is_uuid,
    reconcile_worker_ledger,
    scoped_key,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _read_primary(db: Session, label: str, fetch: Callable[[], T]) -> T:
    try:
        return fetch()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to fetch {label}: {e}")
        raise LedgerUnavailableError(f"Failed to load {label}") from e


def _read_secondary(db: Session, label: str, fetch: Callable[[], T], default: T) -> T:
    try:
        return fetch()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to fetch {label}; continuing without it: {e}")
        return default


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{action} failed: {e}")
        raise LedgerUnavailableError(f"{action} failed") from e


def _production_query(db: Session):
    return db.query(ProductionOperation).options(
        joinedload(ProductionOperation.operation),
        joinedload(ProductionOperation.production).joinedload(Production.product),
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# READS
# ============================================================================

def get_worker_salaries(db: Session) -> List[Any]:
    """
    Unified payroll feed for all workers: salary lines, pending production
    work and advances, most recent first.
    """
    salary_rows = _read_primary(
        db, "worker salaries",
        lambda: db.query(WorkerSalary).order_by(WorkerSalary.date.desc()).all()
    )
    advance_rows = _read_secondary(
        db, "worker advances",
        lambda: db.query(WorkerAdvance).order_by(WorkerAdvance.date.desc()).all(),
        []
    )
    production_rows = _read_secondary(
        db, "production operations",
        lambda: _production_query(db).order_by(ProductionOperation.date.desc()).all(),
        []
    )

    workers = build_lookup(_read_secondary(db, "workers", lambda: db.query(Worker).all(), []))
    products = build_lookup(_read_secondary(db, "products", lambda: db.query(Product).all(), []))
    operations = build_lookup(_read_secondary(db, "operations", lambda: db.query(Operation).all(), []))

    return reconcile_worker_ledger(
        salary_rows,
        production_rows,
        advance_rows,
        workers=workers,
        products=products,
        operations=operations,
    )


def get_worker_operations(
    db: Session,
    worker_id: str,
    month: Optional[int] = None,
    year: Optional[int] = None
) -> List[Any]:
    """
    Work history for one worker (no advances), optionally limited to a month.
    """
    if not worker_id:
        return []

    prod_query = _production_query(db).filter(ProductionOperation.worker_id == worker_id)
    salary_query = db.query(WorkerSalary).filter(WorkerSalary.worker_id == worker_id)

    if month is not None and year is not None:
        start, _ = month_bounds(month, year)
        end = next_month_start(month, year)
        prod_query = prod_query.filter(ProductionOperation.date >= start, ProductionOperation.date < end)
        salary_query = salary_query.filter(WorkerSalary.date >= start, WorkerSalary.date < end)

    production_rows = _read_primary(
        db, "production operations",
        lambda: prod_query.order_by(ProductionOperation.date.desc()).all()
    )
    salary_rows = _read_primary(
        db, "worker salaries",
        lambda: salary_query.order_by(WorkerSalary.date.desc()).all()
    )

    product_ids = {r.product_id for r in salary_rows if r.product_id}
    operation_ids = {r.operation_id for r in salary_rows if r.operation_id}
    products = build_lookup(_read_secondary(
        db, "products",
        lambda: db.query(Product).filter(Product.id.in_(product_ids)).all() if product_ids else [],
        []
    ))
    operations = build_lookup(_read_secondary(
        db, "operations",
        lambda: db.query(Operation).filter(Operation.id.in_(operation_ids)).all() if operation_ids else [],
        []
    ))
    workers = build_lookup(_read_secondary(
        db, "workers",
        lambda: db.query(Worker).filter(Worker.id == worker_id).all(),
        []
    ))

    return reconcile_worker_ledger(
        salary_rows,
        production_rows,
        [],
        workers=workers,
        products=products,
        operations=operations,
        key=scoped_key,
    )


def get_worker_monthly_summary(db: Session, month: int, year: int) -> List[WorkerMonthlySummary]:
    """Per-worker pieces, net amount, advance and paid status for one month."""
    return aggregate_by_worker(filter_month(get_worker_salaries(db), month, year))


# ============================================================================
# PAID STATE
# ============================================================================

def mark_worker_salaries_paid(
    db: Session,
    ids: Optional[List[str]] = None,
    paid_by: Optional[str] = None,
    worker_id: Optional[str] = None,
    month: Optional[int] = None,
    year: Optional[int] = None
) -> List[WorkerSalary]:
    """
    Mark salary lines paid, either by id list or for one worker's month.

    Rows that are already paid keep their original paid_date.

    Returns:
        The salary rows matched by the target
    """
    if ids:
        invalid = [i for i in ids if not is_uuid(i)]
        if invalid:
            raise ValidationFailedError(
                "Salary ids must be UUIDs",
                details={"invalid_ids": invalid}
            )
        rows = _read_primary(
            db, "worker salaries",
            lambda: db.query(WorkerSalary).filter(WorkerSalary.id.in_(ids)).all()
        )
    elif worker_id and month is not None and year is not None:
        if not is_uuid(worker_id):
            raise ValidationFailedError("worker_id is not a UUID; aborting update")
        start, _ = month_bounds(month, year)
        end = next_month_start(month, year)
        rows = _read_primary(
            db, "worker salaries",
            lambda: db.query(WorkerSalary).filter(
                WorkerSalary.worker_id == worker_id,
                WorkerSalary.date >= start,
                WorkerSalary.date < end
            ).all()
        )
    else:
        raise ValidationFailedError("No target provided for update")

    paid_at = _now()
    changed = 0
    for row in rows:
        if row.paid:
            continue
        row.paid = True
        row.paid_date = paid_at
        if paid_by:
            row.paid_by = paid_by
        changed += 1

    _commit(db, "Marking worker salaries paid")
    logger.info(f"Marked {changed} worker salary line(s) paid ({len(rows)} matched)")
    return rows


def _resolve_production_item(db: Session, item: PaymentItem) -> dict:
    """Fill a production payment from the item, falling back to the stored row."""
    worker_id = item.worker_id
    operation_id = item.operation_id
    day = item.date
    pieces = item.pieces_done
    product_id = item.product_id

    if not (worker_id and operation_id and day):
        stored = db.get(ProductionOperation, item.id)
        if stored is None:
            raise NotFoundError(f"Production record {item.id} not found")
        worker_id = worker_id or stored.worker_id
        operation_id = operation_id or stored.operation_id
        day = day or stored.date
        pieces = pieces or stored.pieces_done
        if product_id is None and stored.production is not None:
            product_id = stored.production.product_id

    if not worker_id or not operation_id or day is None:
        raise ValidationFailedError("Production entry is missing worker, operation or date")

    rate = item.amount_per_piece
    if rate is None:
        operation = db.get(Operation, operation_id)
        if operation is None:
            raise NotFoundError(f"Rate lookup failed: operation {operation_id} not found")
        rate = as_decimal(operation.amount_per_piece)

    total = item.total_amount if item.total_amount is not None else rate * pieces
    return {
        "worker_id": worker_id,
        "product_id": product_id,
        "operation_id": operation_id,
        "pieces_done": int(pieces or 0),
        "amount_per_piece": rate,
        "total_amount": total,
        "date": normalize_day(day),
    }


def process_worker_payments(
    db: Session,
    items: List[PaymentItem],
    paid_by: Optional[str] = None
) -> PaymentResult:
    """
    Pay a selection of unified ledger entries.

    - salary entries (or entries without a source) are marked paid by id
    - production entries are converted into new paid salary lines; the
      production row stays as it is and is hidden by dedup from then on
    - advances are not payable and are counted as skipped

    Each item succeeds or fails on its own; failures are collected in
    `errors` and never stop the rest of the batch.
    """
    result = PaymentResult()

    salary_items = [i for i in items if i.source in (None, "salary")]
    production_items = [i for i in items if i.source == "production"]
    result.skipped = sum(1 for i in items if i.source == "advance")

    # 1. Existing salary lines
    valid_ids = []
    for item in salary_items:
        if is_uuid(item.id):
            valid_ids.append(item.id)
        else:
            result.errors.append(PaymentError(id=item.id, message="Salary id is not a valid UUID"))

    if valid_ids:
        try:
            rows = mark_worker_salaries_paid(db, ids=valid_ids, paid_by=paid_by)
            found = {row.id for row in rows}
            result.updated += len(found)
            for missing in (i for i in valid_ids if i not in found):
                result.errors.append(PaymentError(id=missing, message="Salary record not found"))
        except AppException as e:
            logger.warning(f"Bulk salary payment failed: {e.message}")
            result.errors.extend(PaymentError(id=i, message=e.message) for i in valid_ids)

    # 2. Production work converted into paid salary lines
    for item in production_items:
        try:
            fields = _resolve_production_item(db, item)
            db.add(WorkerSalary(
                **fields,
                paid=True,
                paid_date=_now(),
                paid_by=paid_by,
                created_by=settings.payroll.payment_created_by,
                entered_by=settings.payroll.payment_entered_by,
            ))
            _commit(db, f"Paying production record {item.id}")
            result.created += 1
        except AppException as e:
            db.rollback()
            logger.warning(f"Failed to pay production record {item.id}: {e.message}")
            result.errors.append(PaymentError(id=item.id, message=f"Failed to pay op {item.id}: {e.message}"))

    logger.info(
        f"Processed worker payments: {result.updated} updated, {result.created} created, "
        f"{len(result.errors)} failed"
    )
    return result


# ============================================================================
# WRITES
# ============================================================================

def add_worker_salary(db: Session, payload: WorkerSalaryCreate) -> WorkerSalary:
    """Insert a manual, unpaid salary line."""
    rate = as_decimal(payload.amount_per_piece)
    total = payload.total_amount if payload.total_amount is not None else rate * payload.pieces_done

    row = WorkerSalary(
        worker_id=payload.worker_id,
        product_id=payload.product_id,
        operation_id=payload.operation_id,
        pieces_done=payload.pieces_done,
        amount_per_piece=rate,
        total_amount=total,
        date=payload.date or date.today(),
        paid=False,
        entered_by=payload.created_by,
        created_by=payload.created_by,
    )
    db.add(row)
    _commit(db, "Adding worker salary")
    db.refresh(row)
    return row


def add_worker_advance(db: Session, payload: WorkerAdvanceCreate) -> AdvanceEntry:
    """Record a cash advance and return it as a (negative) ledger entry."""
    row = WorkerAdvance(
        worker_id=payload.worker_id,
        amount=payload.amount,
        date=payload.date,
        note=payload.note,
    )
    db.add(row)
    _commit(db, "Adding worker advance")
    db.refresh(row)

    workers = build_lookup(_read_secondary(
        db, "workers",
        lambda: db.query(Worker).filter(Worker.id == payload.worker_id).all(),
        []
    ))
    return advance_to_entry(row, workers)


def _sync_production(db: Session, action: str, apply: Callable[[], Any]) -> None:
    """Mirror a salary-side change onto production rows; failures only warn."""
    try:
        apply()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to sync {action} to production_operation: {e}")


def _production_match(db: Session, worker_id: str, operation_id: str, day: date):
    return db.query(ProductionOperation).filter(
        ProductionOperation.worker_id == worker_id,
        ProductionOperation.operation_id == operation_id,
        ProductionOperation.date == day
    )


def _salary_match(db: Session, worker_id: str, operation_id: str, day: date):
    return db.query(WorkerSalary).filter(
        WorkerSalary.worker_id == worker_id,
        WorkerSalary.operation_id == operation_id,
        WorkerSalary.date == day
    )


def update_worker_salary_by_ops(
    db: Session,
    worker_id: str,
    operation_id: str,
    day: Any,
    pieces_done: Optional[int] = None,
    total_amount: Optional[Decimal] = None
) -> List[WorkerSalary]:
    """
    Correct pieces/amount for every salary line of (worker, operation, day)
    and mirror the change onto the matching production rows.

    The salary update is authoritative and raises on failure; the production
    mirror is best-effort.
    """
    day = normalize_day(day)
    if not worker_id or not operation_id or day is None:
        raise ValidationFailedError("worker_id, operation_id and date are required")
    if pieces_done is None and total_amount is None:
        raise ValidationFailedError("Nothing to update")

    salary_payload = {}
    if pieces_done is not None:
        salary_payload["pieces_done"] = pieces_done
    if total_amount is not None:
        salary_payload["total_amount"] = total_amount

    rows = _read_primary(db, "worker salaries", lambda: _salary_match(db, worker_id, operation_id, day).all())
    for row in rows:
        for field, value in salary_payload.items():
            setattr(row, field, value)
    _commit(db, "Updating worker salary")

    prod_payload = {}
    if pieces_done is not None:
        prod_payload[ProductionOperation.pieces_done] = pieces_done
    if total_amount is not None:
        prod_payload[ProductionOperation.earnings] = total_amount
    _sync_production(
        db, "update",
        lambda: _production_match(db, worker_id, operation_id, day).update(prod_payload, synchronize_session="fetch")
    )
    return rows


def delete_worker_salary(db: Session, worker_id: str, operation_id: str, day: Any) -> int:
    """
    Delete every salary line of (worker, operation, day), then best-effort
    delete the matching production rows.

    Returns:
        Number of salary lines removed
    """
    day = normalize_day(day)
    if not worker_id or not operation_id or day is None:
        raise ValidationFailedError("worker_id, operation_id and date are required")

    try:
        deleted = _salary_match(db, worker_id, operation_id, day).delete(synchronize_session="fetch")
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Deleting worker salary failed: {e}")
        raise LedgerUnavailableError("Deleting worker salary failed") from e

    _sync_production(
        db, "delete",
        lambda: _production_match(db, worker_id, operation_id, day).delete(synchronize_session="fetch")
    )
    return deleted


# ============================================================================
# PRODUCTION WORK
# ============================================================================

def record_production_operation(db: Session, payload: ProductionOperationCreate) -> ProductionOperation:
    """
    Log piece-work for a production. The operation's rate must resolve before
    anything is written. With mirroring enabled, an unpaid salary line for the
    worker is added as well (best-effort).
    """
    operation = db.get(Operation, payload.operation_id)
    if operation is None:
        raise NotFoundError(f"Rate lookup failed: operation {payload.operation_id} not found")
    production = db.get(Production, payload.production_id)
    if production is None:
        raise NotFoundError(f"Production {payload.production_id} not found")
    worker = None
    if payload.worker_id:
        worker = db.get(Worker, payload.worker_id)
        if worker is None:
            raise NotFoundError(f"Worker {payload.worker_id} not found")

    rate = as_decimal(operation.amount_per_piece)
    row = ProductionOperation(
        production_id=production.id,
        operation_id=operation.id,
        worker_id=worker.id if worker else None,
        worker_name=worker.name if worker else None,
        pieces_done=payload.pieces_done,
        earnings=rate * payload.pieces_done,
        date=payload.date or date.today(),
        entered_by=payload.entered_by or "system",
    )
    db.add(row)
    _commit(db, "Recording production operation")
    db.refresh(row)

    if settings.payroll.mirror_production_to_salary and worker and payload.pieces_done > 0:
        try:
            add_worker_salary(db, WorkerSalaryCreate(
                worker_id=worker.id,
                product_id=production.product_id,
                operation_id=operation.id,
                pieces_done=payload.pieces_done,
                amount_per_piece=rate,
                total_amount=rate * payload.pieces_done,
                date=row.date,
                created_by=row.entered_by,
            ))
        except (AppException, ValidationError) as e:
            message = e.message if isinstance(e, AppException) else str(e)
            logger.warning(f"Production record {row.id} created but salary line failed: {message}")
    return row


def assign_worker_to_operation(
    db: Session,
    production_operation_id: str,
    worker_id: str,
    pieces_done: int,
    entered_by: Optional[str] = None
) -> WorkerAssignmentResult:
    """
    Assign (or re-assign) the worker and pieces of a production row, then keep
    the worker's salary lines in step:

    - worker changed A -> B: A's lines for (operation, old day) are deleted and
      a fresh line for B is created dated today
    - same worker: lines for (worker, operation, day) are corrected in place,
      or one is created if none exists yet
    - no previous worker: a line is created for the new worker
    """
    row = db.get(ProductionOperation, production_operation_id)
    if row is None:
        raise NotFoundError(f"Production record {production_operation_id} not found")
    worker = db.get(Worker, worker_id)
    if worker is None:
        raise NotFoundError(f"Worker {worker_id} not found")
    if row.operation is None:
        raise NotFoundError(f"Rate lookup failed: operation {row.operation_id} not found")

    old_worker_id = row.worker_id
    old_day = row.date
    operation_id = row.operation_id
    rate = as_decimal(row.operation.amount_per_piece)
    total = rate * pieces_done
    product_id = row.production.product_id if row.production is not None else None

    row.worker_id = worker.id
    row.worker_name = worker.name
    row.pieces_done = pieces_done
    row.earnings = total
    if entered_by:
        row.entered_by = entered_by
    _commit(db, "Assigning worker to operation")
    db.refresh(row)

    def _new_line(day: date) -> WorkerSalaryCreate:
        return WorkerSalaryCreate(
            worker_id=worker.id,
            product_id=product_id,
            operation_id=operation_id,
            pieces_done=pieces_done,
            amount_per_piece=rate,
            total_amount=total,
            date=day,
            created_by=entered_by or row.entered_by,
        )

    sync = "skipped"
    warning = None
    try:
        if old_day is None or operation_id is None:
            sync = "skipped"
        elif old_worker_id and old_worker_id != worker.id:
            delete_worker_salary(db, old_worker_id, operation_id, old_day)
            if pieces_done > 0:
                add_worker_salary(db, _new_line(date.today()))
            sync = "reassigned"
        elif old_worker_id:
            existing = _read_primary(
                db, "worker salaries",
                lambda: _salary_match(db, worker.id, operation_id, old_day).count()
            )
            if existing:
                update_worker_salary_by_ops(
                    db, worker.id, operation_id, old_day,
                    pieces_done=pieces_done, total_amount=total
                )
                sync = "updated"
            elif pieces_done > 0:
                add_worker_salary(db, _new_line(old_day))
                sync = "created"
        elif pieces_done > 0:
            add_worker_salary(db, _new_line(old_day))
            sync = "created"
    except AppException as e:
        logger.warning(f"Production record {row.id} updated but salary sync failed: {e.message}")
        sync = "failed"
        warning = f"Production updated but salary sync failed: {e.message}"

    return WorkerAssignmentResult(
        operation=ProductionOperationRecord.model_validate(row),
        salary_sync=sync,
        warning=warning,
    )


def delete_production_operation(db: Session, production_operation_id: str) -> None:
    """Remove a production row and, best-effort, the salary lines mirroring it."""
    row = db.get(ProductionOperation, production_operation_id)
    if row is None:
        raise NotFoundError(f"Production record {production_operation_id} not found")

    worker_id, operation_id, day = row.worker_id, row.operation_id, row.date
    db.delete(row)
    _commit(db, "Deleting production operation")

    if worker_id and operation_id and day:
        try:
            delete_worker_salary(db, worker_id, operation_id, day)
        except AppException as e:
            logger.warning(f"Salary deletion failed for production record {production_operation_id}: {e.message}")
