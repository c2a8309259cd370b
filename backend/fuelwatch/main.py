from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging

from fuelwatch.config import settings
from fuelwatch.api import agbot, dip_history, guardian, master_data, tanks, vehicles


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create scheduler
scheduler = AsyncIOScheduler()


from fuelwatch.tasks.fleet_sync import sync_fleet_assignments_job

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting application...")
    # Schema is managed by Alembic migrations
    if settings.fleet_sync_enabled:
        scheduler.start()
        scheduler.add_job(
            sync_fleet_assignments_job,
            'cron',
            hour=settings.fleet_sync_hour,
            minute=settings.fleet_sync_minute,
            id='nightly_fleet_sync',
            replace_existing=True
        )
        logger.info(f"Scheduled fleet sync job for {settings.fleet_sync_hour:02d}:{settings.fleet_sync_minute:02d}")

    yield
    # Shutdown
    logger.info("Shutting down application...")
    if scheduler.running:
        scheduler.shutdown()


app = FastAPI(
    title="Fuelwatch",
    description="Fuel tank analytics and fleet master-data reconciliation",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tanks.router, prefix="/api/tanks", tags=["Tanks"])
app.include_router(dip_history.router, prefix="/api/dip-history", tags=["Dip History"])
app.include_router(vehicles.router, prefix="/api/vehicles", tags=["Vehicles"])
app.include_router(master_data.router, prefix="/api/master-data", tags=["Master Data"])
app.include_router(guardian.router, prefix="/api/guardian", tags=["Guardian"])
app.include_router(agbot.router, prefix="/api/agbot", tags=["Agbot"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/")
async def root():
    return {"message": "Fuelwatch API", "docs": "/docs"}
