from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from fuelwatch.database import Base


class Vehicle(Base):
    """Master vehicle record. The canonical owner of a vehicle's fleet."""
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    registration = Column(String(50), unique=True, nullable=False, index=True)
    fleet = Column(String(100), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="Active")
    depot = Column(String(255), nullable=True)
    make = Column(String(100), nullable=True)
    model = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    mappings = relationship("DeviceMapping", back_populates="vehicle", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Vehicle(id={self.id}, registration='{self.registration}', fleet='{self.fleet}')>"
