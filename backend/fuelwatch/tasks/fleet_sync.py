import logging
from fuelwatch.api.common import report_cache
from fuelwatch.database import SessionLocal
from fuelwatch.models import ExternalSystem
from fuelwatch.services.reconciliation import ReconciliationService

logger = logging.getLogger(__name__)

def sync_fleet_assignments_job():
    """
    Scheduled job to re-attribute event fleets from the mapping table for
    every external system.
    """
    logger.info("Starting scheduled fleet sync")
    session = SessionLocal()
    try:
        service = ReconciliationService(session)
        for system in ExternalSystem:
            try:
                result = service.sync_fleet_assignments(system.value)
                logger.info(f"{result.system}: {result.updated_count} events re-attributed")
            except Exception as e:
                # Failure is recorded in the sync log; carry on with the next system
                logger.error(f"Error syncing {system.value}: {e}")
                session.rollback()
        report_cache.invalidate("fleet.sync")
    except Exception as e:
        logger.error(f"Scheduler job failed: {e}")
    finally:
        session.close()
    logger.info("Scheduled fleet sync completed")
