from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from fuelwatch.database import Base


class ExternalSystem(str, enum.Enum):
    LYTX = "lytx"          # device serial
    GUARDIAN = "guardian"  # guardian unit
    MTDATA = "mtdata"      # mtdata vehicle id


class MappingSource(str, enum.Enum):
    MANUAL = "manual"
    AUTO = "auto"
    IMPORT = "import"


class DeviceMapping(Base):
    """
    Maps an external system identifier to a master vehicle.
    fleet and vehicle_registration are copies of the vehicle's values and are
    only ever written from the vehicle record.
    """
    __tablename__ = "device_mappings"

    id = Column(Integer, primary_key=True, index=True)
    system = Column(String(20), nullable=False, index=True)
    external_id = Column(String(100), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_registration = Column(String(50), nullable=False)
    fleet = Column(String(100), nullable=False)

    mapping_source = Column(String(20), nullable=False, default=MappingSource.MANUAL.value)
    confidence_score = Column(Float, default=1.0)
    verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    vehicle = relationship("Vehicle", back_populates="mappings")

    __table_args__ = (
        UniqueConstraint('system', 'external_id', name='uq_device_mappings_system_external_id'),
    )

    def __repr__(self):
        return f"<DeviceMapping(system='{self.system}', external_id='{self.external_id}', vehicle_id={self.vehicle_id})>"
