from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, String, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from fuelwatch.database import Base


class DipReading(Base):
    """A manually or automatically recorded tank level."""
    __tablename__ = "dip_readings"

    id = Column(Integer, primary_key=True, index=True)
    tank_id = Column(Integer, ForeignKey("tanks.id"), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    value = Column(Float, nullable=False)
    recorded_by = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    tank = relationship("Tank", back_populates="readings")

    __table_args__ = (
        UniqueConstraint('tank_id', 'timestamp', name='uq_dip_readings_tank_timestamp'),
        Index('ix_dip_readings_tank_timestamp', 'tank_id', 'timestamp'),
    )

    def __repr__(self):
        return f"<DipReading(id={self.id}, timestamp='{self.timestamp}', value={self.value})>"
