import datetime as dt
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.periods import normalize_day
from app.schemas.attendance import AttendanceSummary


class EmployeeRecord(BaseModel):
    id: str
    name: str
    base_salary: Decimal
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class EmployeeSalaryRecord(BaseModel):
    """Stored row, as written."""
    id: str
    employee_id: str
    salary_month: str
    gross_salary: Decimal
    advance: Decimal
    net_salary: Decimal
    paid: bool
    paid_date: Optional[dt.datetime] = None
    paid_by: Optional[str] = None
    employee_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EmployeeSalaryView(BaseModel):
    """Read-time view: advance includes the ledger and net is recomputed."""
    id: str
    employee_id: str
    employee_name: Optional[str] = None
    salary_month: str
    month: Optional[dt.date] = None
    gross_salary: Decimal
    stored_advance: Decimal
    ledger_advance: Decimal
    advance: Decimal
    net_salary: Decimal
    paid: bool
    paid_date: Optional[dt.datetime] = None
    paid_by: Optional[str] = None


class EmployeeSalaryCreate(BaseModel):
    employee_id: str
    salary_month: Union[dt.date, str]
    gross_salary: Decimal = Decimal("0")
    advance: Decimal = Decimal("0")
    net_salary: Decimal = Decimal("0")
    paid: bool = False
    paid_date: Optional[dt.datetime] = None
    employee_name: Optional[str] = None


class EmployeeSalaryUpdate(BaseModel):
    salary_month: Optional[Union[dt.date, str]] = None
    gross_salary: Optional[Decimal] = None
    advance: Optional[Decimal] = None
    net_salary: Optional[Decimal] = None
    paid: Optional[bool] = None
    paid_date: Optional[dt.datetime] = None
    employee_name: Optional[str] = None


class MarkEmployeePaidRequest(BaseModel):
    ids: List[str]
    paid_by: Optional[str] = None


class EmployeeAdvanceCreate(BaseModel):
    employee_id: str
    amount: Decimal = Field(gt=0)
    date: dt.date
    note: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _truncate_day(cls, value):
        return normalize_day(value)


class EmployeeAdvanceRecord(BaseModel):
    id: int
    employee_id: str
    amount: Decimal
    date: dt.date
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class GenerateSalaryRequest(BaseModel):
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=2000, le=2100)


class SalaryOutcome(BaseModel):
    employee_id: str
    employee: str
    status: Literal["created", "updated", "skipped", "failed"]
    reason: Optional[str] = None
    error: Optional[str] = None
    summary: Optional[AttendanceSummary] = None
    attendance_incomplete: bool = False
    salary: Optional[EmployeeSalaryRecord] = None


class SalaryGenerationReport(BaseModel):
    salary_month: str
    results: List[SalaryOutcome] = []
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
