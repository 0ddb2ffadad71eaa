import datetime as dt
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.periods import normalize_day

EntrySource = Literal["salary", "production", "advance"]


class _DayInput(BaseModel):
    """Accepts timestamps for date fields and keeps only the calendar day."""

    @field_validator("date", mode="before", check_fields=False)
    @classmethod
    def _truncate_day(cls, value):
        return normalize_day(value)


# --- Unified ledger entries ---

class LedgerEntryBase(BaseModel):
    id: str
    worker_id: Optional[str] = None
    worker_name: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    operation_id: Optional[str] = None
    operation_name: Optional[str] = None
    date: dt.date
    pieces_done: int = 0
    amount_per_piece: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    paid: bool = False
    entered_by: Optional[str] = None


class SalaryEntry(LedgerEntryBase):
    source: Literal["salary"] = "salary"
    paid_date: Optional[dt.datetime] = None
    paid_by: Optional[str] = None


class ProductionEntry(LedgerEntryBase):
    source: Literal["production"] = "production"
    production_id: Optional[str] = None


class AdvanceEntry(LedgerEntryBase):
    source: Literal["advance"] = "advance"
    note: Optional[str] = None


LedgerEntry = Annotated[
    Union[SalaryEntry, ProductionEntry, AdvanceEntry],
    Field(discriminator="source"),
]


# --- Monthly aggregation ---

class OperationLine(BaseModel):
    source: EntrySource
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    operation_id: Optional[str] = None
    operation_name: Optional[str] = None
    pieces_done: int
    amount: Decimal


class WorkerMonthlySummary(BaseModel):
    worker_id: Optional[str]
    worker_name: str
    total_pieces: int = 0
    total_amount: Decimal = Decimal("0")  # net of advances
    total_advance: Decimal = Decimal("0")
    paid: bool = True
    operations: List[OperationLine] = []


# --- Payments ---

class PaymentItem(_DayInput):
    id: str
    source: Optional[EntrySource] = None
    worker_id: Optional[str] = None
    product_id: Optional[str] = None
    operation_id: Optional[str] = None
    pieces_done: int = 0
    amount_per_piece: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    date: Optional[dt.date] = None


class PaymentError(BaseModel):
    id: str
    message: str


class PaymentResult(BaseModel):
    updated: int = 0
    created: int = 0
    skipped: int = 0
    errors: List[PaymentError] = []


class ProcessPaymentsRequest(BaseModel):
    items: List[PaymentItem]
    paid_by: Optional[str] = None


class MarkWorkerPaidRequest(BaseModel):
    ids: Optional[List[str]] = None
    paid_by: Optional[str] = None
    worker_id: Optional[str] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = None


# --- Worker salary / advance records ---

class WorkerSalaryCreate(_DayInput):
    worker_id: str
    product_id: Optional[str] = None
    operation_id: Optional[str] = None
    pieces_done: int = Field(default=0, ge=0)
    amount_per_piece: Decimal = Decimal("0")
    total_amount: Optional[Decimal] = None
    date: Optional[dt.date] = None
    created_by: Optional[str] = None


class WorkerSalaryRecord(BaseModel):
    id: str
    worker_id: str
    product_id: Optional[str] = None
    operation_id: Optional[str] = None
    pieces_done: int
    amount_per_piece: Decimal
    total_amount: Decimal
    date: dt.date
    paid: bool
    paid_date: Optional[dt.datetime] = None
    paid_by: Optional[str] = None
    entered_by: Optional[str] = None
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class WorkerSalaryOpsUpdate(_DayInput):
    worker_id: str
    operation_id: str
    date: dt.date
    pieces_done: Optional[int] = Field(default=None, ge=0)
    total_amount: Optional[Decimal] = None


class WorkerSalaryOpsKey(_DayInput):
    worker_id: str
    operation_id: str
    date: dt.date


class WorkerAdvanceCreate(_DayInput):
    worker_id: str
    amount: Decimal = Field(gt=0)
    date: dt.date
    note: Optional[str] = None


# --- Production work ---

class ProductionOperationCreate(_DayInput):
    production_id: str
    operation_id: str
    worker_id: Optional[str] = None
    pieces_done: int = Field(default=0, ge=0)
    date: Optional[dt.date] = None
    entered_by: Optional[str] = None


class ProductionOperationRecord(BaseModel):
    id: str
    production_id: str
    operation_id: Optional[str] = None
    worker_id: Optional[str] = None
    worker_name: Optional[str] = None
    pieces_done: int
    earnings: Optional[Decimal] = None
    date: Optional[dt.date] = None
    entered_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class WorkerAssignment(BaseModel):
    worker_id: str
    pieces_done: int = Field(ge=0)
    entered_by: Optional[str] = None


class WorkerAssignmentResult(BaseModel):
    operation: ProductionOperationRecord
    salary_sync: Literal["reassigned", "updated", "created", "skipped", "failed"]
    warning: Optional[str] = None
