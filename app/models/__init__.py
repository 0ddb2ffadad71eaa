# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    worker, employee, catalog, production_operation,
    worker_salary, employee_salary, attendance,
)

# Explicit class exports for cleaner imports
from .worker import Worker
from .employee import Employee
from .catalog import Product, Operation, Production, ProductionStatus
from .production_operation import ProductionOperation
from .worker_salary import WorkerSalary, WorkerAdvance
from .employee_salary import EmployeeSalary, EmployeeAdvance
from .attendance import Attendance, AttendanceStatus, PersonType

__all__ = [
    "Worker",
    "Employee",
    "Product",
    "Operation",
    "Production",
    "ProductionStatus",
    "ProductionOperation",
    "WorkerSalary",
    "WorkerAdvance",
    "EmployeeSalary",
    "EmployeeAdvance",
    "Attendance",
    "AttendanceStatus",
    "PersonType",
]
