from sqlalchemy import Column, Integer, String, DateTime, Float, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from fuelwatch.database import Base


class Tank(Base):
    """A monitored fuel tank (dip-read, SmartFill or Agbot)."""
    __tablename__ = "tanks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    location = Column(String(255), nullable=True)
    group_name = Column(String(255), nullable=True, index=True)
    customer_name = Column(String(255), nullable=True, index=True)
    unit_number = Column(String(50), nullable=True)
    tank_number = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)

    # Levels in litres. capacity is the safe fill level.
    capacity = Column(Float, nullable=False)
    min_level = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    readings = relationship(
        "DipReading",
        back_populates="tank",
        cascade="all, delete-orphan",
        order_by="DipReading.timestamp",
    )

    def __repr__(self):
        return f"<Tank(id={self.id}, name='{self.name}')>"
