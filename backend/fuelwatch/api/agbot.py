from fastapi import APIRouter, HTTPException

from fuelwatch.schemas.agbot import AgbotAnalytics, AgbotAnalyticsRequest
from fuelwatch.services.agbot_analytics import analyze_agbot

router = APIRouter()


@router.post("/analytics", response_model=AgbotAnalytics)
async def agbot_analytics(request: AgbotAnalyticsRequest):
    """Percentage-based consumption analytics for a series of Agbot readings."""
    if not request.readings:
        raise HTTPException(status_code=400, detail="At least one reading is required")
    return analyze_agbot(request.readings)
