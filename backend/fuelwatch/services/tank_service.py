from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from fuelwatch.models import DipReading, Tank
from fuelwatch.schemas.analytics import FuelAnalytics, ReadingPoint, TankProfile
from fuelwatch.schemas.tank import DipHistoryRow, TankSummary
from fuelwatch.services.fuel_analytics import analyze_tank, fill_percentage, zone_for
from fuelwatch.services.presentation import UNKNOWN_CUSTOMER
import csv
import io
import logging
from fastapi import HTTPException

logger = logging.getLogger(__name__)

UNKNOWN_TANK = "Unknown Tank"

# Accepted CSV header aliases
TIME_ALIASES = ['timestamp', 'Timestamp', 'Date', 'Reading Date', 'Dip Date', 'time']
VALUE_ALIASES = ['value', 'Value', 'Level', 'Dip', 'Litres', 'Volume']
RECORDED_BY_ALIASES = ['recorded_by', 'Recorded By', 'Operator']
NOTES_ALIASES = ['notes', 'Notes', 'Comment']

DATE_FORMATS = [
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%d/%m/%Y %H:%M:%S',
    '%d/%m/%Y %H:%M',
    '%d/%m/%Y',
    '%Y-%m-%d',
]


def parse_timestamp(value: str) -> Optional[datetime]:
    value = value.strip().strip('"')
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _first_key(row: dict, aliases: List[str]) -> Optional[str]:
    return next((k for k in aliases if k in row and row[k] not in (None, '')), None)


def build_dip_history(readings: Iterable[DipReading], tanks: Dict[int, Tank]) -> List[DipHistoryRow]:
    """Join readings to their tanks; readings whose tank is not loaded get placeholder names."""
    rows = []
    for reading in readings:
        tank = tanks.get(reading.tank_id)
        rows.append(DipHistoryRow(
            id=reading.id,
            tank_id=reading.tank_id,
            tank_name=tank.name if tank else UNKNOWN_TANK,
            customer_name=(tank.customer_name if tank and tank.customer_name else UNKNOWN_CUSTOMER),
            group_name=tank.group_name if tank else None,
            unit_number=tank.unit_number if tank else None,
            tank_number=tank.tank_number if tank else None,
            timestamp=reading.timestamp,
            value=reading.value,
            recorded_by=reading.recorded_by,
            notes=reading.notes,
        ))
    return rows


class TankService:
    def __init__(self, db: Session):
        self.db = db

    def get_tank(self, tank_id: int) -> Tank:
        tank = self.db.query(Tank).filter(Tank.id == tank_id).first()
        if not tank:
            raise HTTPException(status_code=404, detail="Tank not found")
        return tank

    @staticmethod
    def validate_levels(capacity: float, min_level: float) -> None:
        if min_level > capacity:
            raise HTTPException(status_code=400, detail="min_level cannot exceed capacity")

    def summarize(self, tank: Tank) -> TankSummary:
        """Tank with its latest level, fill percentage and zone."""
        latest = (
            self.db.query(DipReading)
            .filter(DipReading.tank_id == tank.id)
            .order_by(DipReading.timestamp.desc())
            .first()
        )
        summary = TankSummary.model_validate(tank)
        if latest:
            percent = fill_percentage(latest.value, tank.capacity)
            summary.current_level = latest.value
            summary.fill_percentage = round(percent, 2) if percent is not None else None
            summary.status = zone_for(percent)
            summary.last_reading = latest.timestamp
        return summary

    def list_summaries(self) -> List[TankSummary]:
        return [self.summarize(t) for t in self.db.query(Tank).order_by(Tank.id).all()]

    def get_readings(
        self,
        tank_id: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[DipReading]:
        query = self.db.query(DipReading).filter(DipReading.tank_id == tank_id)
        if start_date:
            query = query.filter(DipReading.timestamp >= start_date)
        if end_date:
            query = query.filter(DipReading.timestamp <= end_date)
        return query.order_by(DipReading.timestamp).all()

    def reading_points(self, tank_id: int, start_date: Optional[datetime] = None) -> List[ReadingPoint]:
        return [ReadingPoint.model_validate(r) for r in self.get_readings(tank_id, start_date)]

    def analytics(self, tank_id: int, days: Optional[int] = None) -> FuelAnalytics:
        tank = self.get_tank(tank_id)
        start_date = None
        if days:
            latest = (
                self.db.query(DipReading.timestamp)
                .filter(DipReading.tank_id == tank_id)
                .order_by(DipReading.timestamp.desc())
                .first()
            )
            if latest:
                start_date = latest[0] - timedelta(days=days)
        points = self.reading_points(tank_id, start_date)
        profile = TankProfile(capacity=tank.capacity, min_level=tank.min_level)
        return analyze_tank(points, profile, tank_id=tank_id)

    def add_reading(
        self,
        tank_id: int,
        value: float,
        timestamp: datetime,
        recorded_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DipReading:
        """
        Add a single dip reading. A reading at an existing timestamp is
        rejected.
        """
        self.get_tank(tank_id)
        existing = self.db.query(DipReading).filter(
            DipReading.tank_id == tank_id,
            DipReading.timestamp == timestamp
        ).first()
        if existing:
            raise HTTPException(status_code=400, detail=f"A reading already exists at {timestamp.isoformat()}")

        reading = DipReading(
            tank_id=tank_id,
            timestamp=timestamp,
            value=value,
            recorded_by=recorded_by,
            notes=notes,
        )
        self.db.add(reading)
        self.db.commit()
        self.db.refresh(reading)
        return reading

    def process_readings_csv(self, file_content: str, tank_id: int) -> dict:
        """
        Import dip readings from CSV. Rows that cannot be parsed are skipped, as
        are readings at timestamps the tank already has.
        """
        self.get_tank(tank_id)

        reader = csv.DictReader(io.StringIO(file_content))
        parsed: Dict[datetime, Dict[str, Any]] = {}
        invalid = 0
        for row in reader:
            ts_key = _first_key(row, TIME_ALIASES)
            val_key = _first_key(row, VALUE_ALIASES)
            if not ts_key or not val_key:
                invalid += 1
                continue
            ts = parse_timestamp(row[ts_key])
            try:
                value = float(str(row[val_key]).replace(',', ''))
            except ValueError:
                value = None
            if ts is None or value is None or value < 0:
                invalid += 1
                continue

            by_key = _first_key(row, RECORDED_BY_ALIASES)
            notes_key = _first_key(row, NOTES_ALIASES)
            # Later rows win for a repeated timestamp within one file
            parsed[ts] = {
                'timestamp': ts,
                'value': value,
                'recorded_by': row[by_key].strip() if by_key else None,
                'notes': row[notes_key].strip() if notes_key else None,
            }

        if not parsed:
            return {
                "message": "No valid readings found",
                "new_readings": 0,
                "skipped_duplicates": 0,
                "invalid_rows": invalid,
                "total_processed": 0
            }

        existing_timestamps = set(
            r.timestamp for r in self.db.query(DipReading.timestamp).filter(
                DipReading.tank_id == tank_id
            ).all()
        )

        new_count = 0
        skipped_count = 0
        for reading in sorted(parsed.values(), key=lambda r: r['timestamp']):
            if reading['timestamp'] in existing_timestamps:
                skipped_count += 1
                continue
            self.db.add(DipReading(tank_id=tank_id, **reading))
            new_count += 1

        self.db.commit()
        logger.info(f"Imported {new_count} readings for tank {tank_id} ({skipped_count} duplicates, {invalid} invalid)")

        return {
            "message": "Upload complete",
            "new_readings": new_count,
            "skipped_duplicates": skipped_count,
            "invalid_rows": invalid,
            "total_processed": len(parsed)
        }
