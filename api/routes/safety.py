"""Safety alert routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_services
from api.schemas.query import AcknowledgeAlertRequest

router = APIRouter()


@router.post("/safety-alerts/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    request: Optional[AcknowledgeAlertRequest] = None,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Acknowledge a safety alert. Acknowledging twice is harmless."""
    acknowledged_by = request.acknowledgedBy if request else None
    alert = await services.context_manager.acknowledge_alert(alert_id, acknowledged_by)
    return {"success": True, "alert": alert.model_dump(mode="json")}
