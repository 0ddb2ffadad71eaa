from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.sql import func
from app.database import Base
from app.models._ids import new_uuid

class WorkerSalary(Base):
    """Payroll line for a worker: manual entry, production mirror, or converted at payment time."""
    __tablename__ = "worker_salaries"

    id = Column(String(36), primary_key=True, default=new_uuid)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=True)
    operation_id = Column(String(36), ForeignKey("operations.id"), nullable=True, index=True)
    pieces_done = Column(Integer, default=0, nullable=False)
    amount_per_piece = Column(Numeric(12, 2), default=0, nullable=False)
    total_amount = Column(Numeric(12, 2), default=0, nullable=False)
    date = Column(Date, nullable=False, index=True)
    paid = Column(Boolean, default=False, nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    paid_by = Column(String, nullable=True)
    entered_by = Column(String, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class WorkerAdvance(Base):
    __tablename__ = "worker_advances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
