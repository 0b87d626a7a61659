"""
Service container for the API.

Every component gets its collaborators at construction time. The container
is built once from Settings by the application lifespan, which also closes
it on shutdown.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from nelson.config import Settings
from nelson.context.manager import ContextManager
from nelson.diagnosis.engine import DiagnosticWorkflowEngine
from nelson.llm.embeddings import EmbeddingGateway
from nelson.llm.gateway import CompletionGateway
from nelson.orchestration.engine import OrchestrationEngine
from nelson.retrieval.retriever import KnowledgeRetriever
from nelson.routing.classifier import QueryClassifier
from nelson.safety.screener import SafetyScreener
from nelson.store import create_store
from nelson.store.base import RecordStore
from nelson.utils.protocols import CompletionGatewayProtocol, EmbeddingGatewayProtocol


logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """All long-lived services of one process."""

    store: RecordStore
    gateway: CompletionGatewayProtocol
    embedder: EmbeddingGatewayProtocol
    retriever: KnowledgeRetriever
    context_manager: ContextManager
    orchestrator: OrchestrationEngine

    async def close(self) -> None:
        """Release outbound clients and flush the store."""
        for backend in getattr(self.gateway, "backends", []):
            await backend.client.close()
        client = getattr(self.embedder, "client", None)
        if client is not None:
            await client.close()
        await self.store.close()


def build_services(
    settings: Settings,
    store: Optional[RecordStore] = None,
    gateway: Optional[CompletionGatewayProtocol] = None,
    embedder: Optional[EmbeddingGatewayProtocol] = None,
) -> ServiceContainer:
    """
    Wire up every component.

    Args:
        settings: Runtime configuration
        store: Record store override (defaults to one chosen from settings)
        gateway: Completion gateway override
        embedder: Embedding gateway override

    Returns:
        ServiceContainer
    """
    store = store if store is not None else create_store(settings)
    gateway = gateway if gateway is not None else CompletionGateway.from_settings(settings)
    embedder = embedder if embedder is not None else EmbeddingGateway.from_settings(settings)

    retriever = KnowledgeRetriever(store, embedder)
    context_manager = ContextManager(store, gateway)
    orchestrator = OrchestrationEngine(
        store=store,
        classifier=QueryClassifier(store),
        screener=SafetyScreener(store),
        workflow_engine=DiagnosticWorkflowEngine(gateway, retriever, context_manager),
        context_manager=context_manager,
    )

    logger.info(f"Services ready (store={type(store).__name__})")
    return ServiceContainer(
        store=store,
        gateway=gateway,
        embedder=embedder,
        retriever=retriever,
        context_manager=context_manager,
        orchestrator=orchestrator,
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the application's services."""
    return request.app.state.services
