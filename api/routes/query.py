"""Query API routes."""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_services
from api.schemas.query import QueryRequest
from nelson.models.results import QueryResponse

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/query", response_model=QueryResponse)
async def submit_query(
    request: QueryRequest,
    services: ServiceContainer = Depends(get_services),
) -> QueryResponse:
    """
    Answer one user message.

    Emergencies get the safety response; everything else goes through the
    six-step diagnostic workflow.
    """
    logger.info(f"Processing query (session={request.sessionId}, user={request.userId})")
    return await services.orchestrator.submit_query(
        request.message,
        session_id=request.sessionId,
        user_id=request.userId,
    )
