from sqlalchemy import Column, String, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from app.database import Base
from app.models._ids import new_uuid

class Employee(Base):
    """Salaried staff member; monthly pay is derived from base_salary and attendance."""
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String, nullable=False, index=True)
    base_salary = Column(Numeric(12, 2), default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Employee {self.name}>"
