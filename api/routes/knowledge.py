"""Knowledge search routes."""

from fastapi import APIRouter, Depends

from api.dependencies import ServiceContainer, get_services
from api.schemas.query import KnowledgeSearchRequest
from nelson.retrieval.retriever import to_citations

router = APIRouter()


@router.post("/knowledge/search")
async def search_knowledge(
    request: KnowledgeSearchRequest,
    services: ServiceContainer = Depends(get_services),
) -> dict:
    """
    Search the textbook corpus.

    An empty result means no context was found, including when embeddings
    or the store are unavailable.
    """
    passages = await services.retriever.retrieve(
        request.text,
        keyword_filter=request.keywords,
        top_k=request.top_k,
    )
    return {
        "success": True,
        "passages": [p.model_dump(mode="json") for p in passages],
        "citations": [c.model_dump(mode="json") for c in to_citations(passages)],
    }
