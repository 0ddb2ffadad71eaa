from sqlalchemy import Column, String, Date, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base
from app.models._ids import new_uuid
import enum

class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LEAVE = "leave"

class PersonType(str, enum.Enum):
    EMPLOYEE = "employee"
    WORKER = "worker"

class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("person_type", "person_id", "date", name="uq_attendance_person_day"),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    person_type = Column(String, nullable=False, index=True)
    person_id = Column(String(36), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=False)  # Store enum value as string
    shift = Column(String, nullable=True)
    marked_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
