"""
Employee Payroll Router

Monthly salaries, advances and the salary generator for salaried employees.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from app.database import get_db
from app.schemas.employee_payroll import (
    EmployeeAdvanceCreate,
    EmployeeAdvanceRecord,
    EmployeeRecord,
    EmployeeSalaryCreate,
    EmployeeSalaryRecord,
    EmployeeSalaryUpdate,
    EmployeeSalaryView,
    GenerateSalaryRequest,
    MarkEmployeePaidRequest,
    SalaryGenerationReport,
)
from app.services import employee_payroll_service


router = APIRouter(
    prefix="/employees",
    tags=["employees"],
)


@router.get("", response_model=List[EmployeeRecord])
def list_employees(db: Session = Depends(get_db)):
    return employee_payroll_service.get_employees(db)


@router.get("/salaries", response_model=List[EmployeeSalaryView])
def list_employee_salaries(db: Session = Depends(get_db)):
    """
    Salary rows with ledger advances folded in and net pay recomputed.
    """
    return employee_payroll_service.get_employee_salaries(db)


@router.post("/salaries", response_model=EmployeeSalaryRecord)
def create_employee_salary(payload: EmployeeSalaryCreate, db: Session = Depends(get_db)):
    return employee_payroll_service.create_employee_salary(db, payload)


@router.patch("/salaries/{salary_id}", response_model=EmployeeSalaryRecord)
def update_employee_salary(salary_id: str, updates: EmployeeSalaryUpdate, db: Session = Depends(get_db)):
    return employee_payroll_service.update_employee_salary(db, salary_id, updates)


@router.post("/salaries/mark-paid", response_model=List[EmployeeSalaryRecord])
def mark_employee_salaries_paid(request: MarkEmployeePaidRequest, db: Session = Depends(get_db)):
    return employee_payroll_service.mark_employee_salaries_paid(db, request.ids, paid_by=request.paid_by)


@router.post("/salaries/generate", response_model=SalaryGenerationReport)
def generate_employee_salaries(request: GenerateSalaryRequest, db: Session = Depends(get_db)):
    """
    Create or refresh unpaid salary rows for all active employees.
    Defaults to the current month.
    """
    return employee_payroll_service.auto_generate_employee_salary(db, request.month, request.year)


@router.get("/salaries/paid", response_model=List[str])
def paid_employee_ids(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    db: Session = Depends(get_db)
):
    return employee_payroll_service.get_paid_employee_ids_for_month(db, month, year)


@router.post("/advances", response_model=EmployeeAdvanceRecord)
def add_employee_advance(payload: EmployeeAdvanceCreate, db: Session = Depends(get_db)):
    return employee_payroll_service.add_employee_advance(db, payload)
