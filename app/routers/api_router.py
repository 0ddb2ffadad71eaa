from fastapi import APIRouter
from app.routers import worker_payroll, employee_payroll, attendance

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(worker_payroll.router, tags=["Worker Payroll"])
api_router.include_router(employee_payroll.router, tags=["Employee Payroll"])
api_router.include_router(attendance.router, tags=["Attendance"])
