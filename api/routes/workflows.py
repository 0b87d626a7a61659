"""Diagnostic workflow routes."""

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_services

router = APIRouter()


@router.get("/workflows/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """Return a diagnostic workflow record."""
    workflow = await services.context_manager.get_workflow(workflow_id)
    return {"success": True, "workflow": workflow.model_dump(mode="json")}
