from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base
from app.models._ids import new_uuid

class EmployeeSalary(Base):
    """
    One row per employee per month. `advance` holds only the manually entered
    component; ledger advances are added at read time.
    """
    __tablename__ = "employee_salaries"
    __table_args__ = (
        UniqueConstraint("employee_id", "salary_month", name="uq_employee_salary_month"),
    )

    id = Column(String(36), primary_key=True, default=new_uuid)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=False, index=True)
    salary_month = Column(String(10), nullable=False, index=True)  # YYYY-MM
    gross_salary = Column(Numeric(12, 2), default=0, nullable=False)
    advance = Column(Numeric(12, 2), default=0, nullable=False)
    net_salary = Column(Numeric(12, 2), default=0, nullable=False)
    paid = Column(Boolean, default=False, nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    paid_by = Column(String, nullable=True)
    employee_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class EmployeeAdvance(Base):
    __tablename__ = "employee_advances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
