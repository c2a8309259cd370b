from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime
import enum
from fuelwatch.database import Base


class SyncStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncLog(Base):
    """Audit trail of fleet synchronisation runs."""
    __tablename__ = "sync_log"

    id = Column(Integer, primary_key=True, index=True)
    sync_type = Column(String(50), nullable=False)
    status = Column(String(20), default=SyncStatus.RUNNING.value, nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    records_updated = Column(Integer, default=0)
    mismatches_before = Column(Integer, default=0)
    mismatches_after = Column(Integer, default=0)
    execution_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    def __repr__(self):
        return f"<SyncLog(id={self.id}, sync_type='{self.sync_type}', status='{self.status}')>"
