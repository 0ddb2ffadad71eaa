from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
from app.models._ids import new_uuid

class ProductionOperation(Base):
    """
    One worker's logged output against one operation of a production, on one day.
    Source of truth for work done; never rewritten when the work is paid.
    """
    __tablename__ = "production_operation"

    id = Column(String(36), primary_key=True, default=new_uuid)
    production_id = Column(String(36), ForeignKey("production.id"), nullable=False, index=True)
    operation_id = Column(String(36), ForeignKey("operations.id"), nullable=True, index=True)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=True, index=True)
    worker_name = Column(String, nullable=True)
    pieces_done = Column(Integer, default=0, nullable=False)
    earnings = Column(Numeric(12, 2), nullable=True)
    date = Column(Date, nullable=True, index=True)
    entered_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    operation = relationship("Operation")
    production = relationship("Production")
