from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, Index
from datetime import datetime
from fuelwatch.database import Base


class FleetEvent(Base):
    """An event or trip reported by an external system (LYTX, Guardian, MtData)."""
    __tablename__ = "fleet_events"

    id = Column(Integer, primary_key=True, index=True)
    system = Column(String(20), nullable=False, index=True)
    external_id = Column(String(100), nullable=True, index=True)
    external_event_id = Column(String(100), nullable=True)
    vehicle_registration = Column(String(50), nullable=True, index=True)
    fleet = Column(String(100), nullable=True, index=True)
    occurred_at = Column(DateTime, nullable=False, index=True)

    event_type = Column(String(100), nullable=True)
    severity = Column(String(20), nullable=True)
    verified = Column(Boolean, default=False, nullable=False)
    confirmation = Column(String(50), nullable=True)
    driver_name = Column(String(255), nullable=True)
    driver_id = Column(Integer, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    speed_kph = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_fleet_events_registration_fleet', 'vehicle_registration', 'fleet'),
    )

    def __repr__(self):
        return f"<FleetEvent(id={self.id}, system='{self.system}', external_id='{self.external_id}')>"
