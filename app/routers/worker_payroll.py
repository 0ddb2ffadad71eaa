"""
Worker Payroll Router

Handles HTTP endpoints for piece-rate worker pay.
All business logic is delegated to the worker payroll service layer.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from app.database import get_db
from app.schemas.worker_payroll import (
    AdvanceEntry,
    LedgerEntry,
    MarkWorkerPaidRequest,
    PaymentResult,
    ProcessPaymentsRequest,
    ProductionOperationCreate,
    ProductionOperationRecord,
    WorkerAdvanceCreate,
    WorkerAssignment,
    WorkerAssignmentResult,
    WorkerMonthlySummary,
    WorkerSalaryCreate,
    WorkerSalaryOpsKey,
    WorkerSalaryOpsUpdate,
    WorkerSalaryRecord,
)
from app.services import worker_payroll_service


router = APIRouter(
    prefix="/workers",
    tags=["workers"],
)


@router.get("/salaries", response_model=List[LedgerEntry])
def list_worker_salaries(db: Session = Depends(get_db)):
    """
    Unified feed of salary lines, pending production work and advances.
    """
    return worker_payroll_service.get_worker_salaries(db)


@router.get("/salaries/summary", response_model=List[WorkerMonthlySummary])
def worker_monthly_summary(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    db: Session = Depends(get_db)
):
    return worker_payroll_service.get_worker_monthly_summary(db, month, year)


@router.post("/salaries", response_model=WorkerSalaryRecord)
def add_worker_salary(payload: WorkerSalaryCreate, db: Session = Depends(get_db)):
    return worker_payroll_service.add_worker_salary(db, payload)


@router.post("/salaries/mark-paid", response_model=List[WorkerSalaryRecord])
def mark_worker_salaries_paid(request: MarkWorkerPaidRequest, db: Session = Depends(get_db)):
    """
    Mark salary lines paid by id list, or for one worker's month.
    """
    return worker_payroll_service.mark_worker_salaries_paid(
        db,
        ids=request.ids,
        paid_by=request.paid_by,
        worker_id=request.worker_id,
        month=request.month,
        year=request.year,
    )


@router.post("/payments", response_model=PaymentResult)
def process_worker_payments(request: ProcessPaymentsRequest, db: Session = Depends(get_db)):
    """
    Pay a mixed selection of salary and production entries.
    Per-item failures are reported in `errors`.
    """
    return worker_payroll_service.process_worker_payments(db, request.items, paid_by=request.paid_by)


@router.put("/salaries/by-operation", response_model=List[WorkerSalaryRecord])
def update_worker_salary_by_ops(request: WorkerSalaryOpsUpdate, db: Session = Depends(get_db)):
    return worker_payroll_service.update_worker_salary_by_ops(
        db,
        request.worker_id,
        request.operation_id,
        request.date,
        pieces_done=request.pieces_done,
        total_amount=request.total_amount,
    )


@router.post("/salaries/by-operation/delete")
def delete_worker_salary(request: WorkerSalaryOpsKey, db: Session = Depends(get_db)):
    deleted = worker_payroll_service.delete_worker_salary(
        db, request.worker_id, request.operation_id, request.date
    )
    return {"deleted": deleted}


@router.post("/advances", response_model=AdvanceEntry)
def add_worker_advance(payload: WorkerAdvanceCreate, db: Session = Depends(get_db)):
    return worker_payroll_service.add_worker_advance(db, payload)


@router.get("/{worker_id}/operations", response_model=List[LedgerEntry])
def get_worker_operations(
    worker_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """
    Work history for one worker, optionally limited to a month.
    """
    return worker_payroll_service.get_worker_operations(db, worker_id, month, year)


@router.post("/production-operations", response_model=ProductionOperationRecord)
def record_production_operation(payload: ProductionOperationCreate, db: Session = Depends(get_db)):
    return worker_payroll_service.record_production_operation(db, payload)


@router.put("/production-operations/{production_operation_id}/assign", response_model=WorkerAssignmentResult)
def assign_worker(
    production_operation_id: str,
    payload: WorkerAssignment,
    db: Session = Depends(get_db)
):
    return worker_payroll_service.assign_worker_to_operation(
        db,
        production_operation_id,
        payload.worker_id,
        payload.pieces_done,
        entered_by=payload.entered_by,
    )


@router.delete("/production-operations/{production_operation_id}", status_code=204)
def delete_production_operation(production_operation_id: str, db: Session = Depends(get_db)):
    worker_payroll_service.delete_production_operation(db, production_operation_id)
