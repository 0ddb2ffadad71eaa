from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base
from app.models._ids import new_uuid

class Worker(Base):
    """Piece-rate worker paid per operation performed."""
    __tablename__ = "workers"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Worker {self.name}>"
