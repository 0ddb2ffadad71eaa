import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from app.core.periods import normalize_day


class AttendanceSummary(BaseModel):
    total_days: int
    present: int
    absent: int
    leave: int
    percentage: float
    marked_days: int = 0


class AttendanceRowIn(BaseModel):
    person_type: Literal["employee", "worker"] = "employee"
    person_id: str
    date: dt.date
    status: Literal["present", "absent", "leave"]
    shift: Optional[str] = None
    marked_by: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _truncate_day(cls, value):
        return normalize_day(value)


class AttendanceRowOut(BaseModel):
    id: str
    person_type: str
    person_id: str
    date: dt.date
    status: str
    shift: Optional[str] = None
    marked_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceBulkRequest(BaseModel):
    rows: List[AttendanceRowIn]


class ActiveEmployee(BaseModel):
    id: str
    name: str
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)
