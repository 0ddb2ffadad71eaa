"""
Master data for piece-work: products, their rated operations, and production batches.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base
from app.models._ids import new_uuid


class ProductionStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String, nullable=False, index=True)


class Operation(Base):
    __tablename__ = "operations"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    amount_per_piece = Column(Numeric(12, 2), default=0, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=True, index=True)

    product = relationship("Product")


class Production(Base):
    __tablename__ = "production"

    id = Column(String(36), primary_key=True, default=new_uuid)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    total_quantity = Column(Integer, default=0)
    status = Column(String, default=ProductionStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")
