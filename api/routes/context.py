"""Session context API routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from api.dependencies import ServiceContainer, get_services
from api.schemas.context import CONTEXT_OPERATIONS, ContextRequest
from nelson.models.records import utc_now
from nelson.models.results import ContextUpdate

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/context")
async def context_operation(
    request: ContextRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """
    Run one context operation: get, update, summarize, or clear.

    Unknown sessions return 404 through the application's error handler.
    """
    if request.operation not in CONTEXT_OPERATIONS:
        raise HTTPException(status_code=400, detail=f"Invalid operation: {request.operation}")

    manager = services.context_manager
    session_id = request.sessionId
    logger.info(f"Context operation {request.operation} for session {session_id}")

    if request.operation == "get":
        context = await manager.get(session_id)
        return {"success": True, "context": context.model_dump(mode="json"), "session_id": session_id}

    if request.operation == "update":
        try:
            new_context = ContextUpdate.model_validate(request.newContext or {})
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=f"Invalid context: {e.errors()[0]['msg']}")
        session = await manager.update(session_id, new_context)
        return {
            "success": True,
            "updated_context": session.model_dump(
                mode="json",
                include={"medical_context", "patient_context", "risk_level", "specialty_focus"},
            ),
            "session_id": session_id,
        }

    if request.operation == "summarize":
        summary = await manager.summarize(session_id, request.conversationData)
        if summary is None:
            return {
                "success": True,
                "summary": None,
                "message": "No conversation history to summarize",
                "session_id": session_id,
            }
        return {"success": True, "summary": summary.model_dump(mode="json"), "session_id": session_id}

    await manager.clear(session_id)
    return {
        "success": True,
        "message": "Medical context cleared successfully",
        "session_id": session_id,
        "cleared_at": utc_now().isoformat(),
    }
