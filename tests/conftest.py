"""
Pytest configuration and shared fixtures for the test suite.
"""

import json

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from nelson.context.manager import ContextManager
from nelson.diagnosis.engine import DiagnosticWorkflowEngine
from nelson.llm.gateway import MockCompletionGateway
from nelson.models.records import MedicalChunk, Session
from nelson.orchestration.engine import OrchestrationEngine
from nelson.retrieval.retriever import KnowledgeRetriever
from nelson.routing.classifier import QueryClassifier
from nelson.safety.screener import SafetyScreener
from nelson.store.base import MEDICAL_CHUNKS, SESSIONS
from nelson.store.memory import InMemoryRecordStore


# ============================================================================
# Scripted model replies
# ============================================================================

def _reply(**fields) -> str:
    return json.dumps(fields)


STEP_REPLIES = {
    "symptom_analysis": _reply(symptoms=["cough", "low-grade fever"], severity="mild", confidence=0.8),
    "initial_assessment": _reply(assessment="Likely viral upper respiratory infection", confidence=0.75),
    "differential_diagnosis": _reply(
        diagnoses=[{"name": "Viral URI", "likelihood": 0.6}, {"name": "Asthma", "likelihood": 0.2}],
        confidence=0.7,
    ),
    "evidence_evaluation": _reply(
        evaluation="Textbook supports a viral etiology",
        top_diagnosis="Viral URI",
        confidence=0.65,
    ),
    "treatment_recommendations": _reply(
        recommendations="Fluids, rest, and honey for children over 1 year",
        safety_concerns=["Avoid honey under 12 months"],
        confidence=0.8,
    ),
    "follow_up_guidance": _reply(guidance="See a pediatrician if cough lasts over 3 weeks", confidence=0.9),
}

# First line of each step's prompt identifies the step
STEP_PROMPT_MARKERS = [
    ("analyze the following patient description", "symptom_analysis"),
    ("provide an initial medical assessment", "initial_assessment"),
    ("generate a differential diagnosis list", "differential_diagnosis"),
    ("Evaluate the evidence", "evidence_evaluation"),
    ("treatment recommendations for pediatric", "treatment_recommendations"),
    ("follow-up guidance", "follow_up_guidance"),
]


def step_of(user_prompt: str) -> str:
    """Name of the diagnostic step a prompt belongs to."""
    for marker, step in STEP_PROMPT_MARKERS:
        if marker in user_prompt:
            return step
    return "unknown"


@pytest.fixture
def step_replies():
    """Structured replies for each diagnostic step."""
    return dict(STEP_REPLIES)


@pytest.fixture
def scripted_gateway(step_replies):
    """Gateway answering each diagnostic step with its structured reply."""
    return MockCompletionGateway(lambda system, user: step_replies.get(step_of(user), "plain text"))


# ============================================================================
# Store and components
# ============================================================================

@pytest.fixture
def store():
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def mock_embedder():
    """Embedder returning a fixed 3-dimensional vector."""
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[1.0, 0.0, 0.0])
    return embedder


@pytest.fixture
def failing_embedder():
    """Embedder that is always unavailable."""
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[])
    return embedder


@pytest.fixture
def sample_chunks():
    """Textbook passages with 3-dimensional embeddings."""
    return [
        MedicalChunk(
            id="chunk-cough",
            book_title="Nelson Textbook of Pediatrics",
            chapter_title="Respiratory Infections",
            section_title="Cough",
            page_number=2011,
            chunk_text="Acute cough in children is most often due to viral respiratory infection.",
            embedding=[1.0, 0.0, 0.0],
        ),
        MedicalChunk(
            id="chunk-asthma",
            book_title="Nelson Textbook of Pediatrics",
            chapter_title="Asthma",
            section_title="Childhood Asthma",
            page_number=1186,
            chunk_text="Recurrent wheeze and nocturnal cough suggest asthma in respiratory evaluation.",
            embedding=[0.6, 0.8, 0.0],
        ),
        MedicalChunk(
            id="chunk-rash",
            book_title="Nelson Textbook of Pediatrics",
            chapter_title="Skin Disorders",
            section_title="Eczema",
            page_number=3450,
            chunk_text="Atopic dermatitis presents with pruritic rash.",
            embedding=[0.0, 0.0, 1.0],
        ),
    ]


@pytest_asyncio.fixture
async def seeded_store(store, sample_chunks):
    """Store holding the sample textbook passages."""
    for chunk in sample_chunks:
        await store.insert(MEDICAL_CHUNKS, chunk.model_dump(mode="json"))
    return store


@pytest.fixture
def session_factory(store):
    """Factory inserting sessions into the store."""
    async def _create(**fields) -> Session:
        session = Session(**fields)
        await store.insert(SESSIONS, session.model_dump(mode="json"))
        return session
    return _create


@pytest.fixture
def context_manager(store, scripted_gateway):
    return ContextManager(store, scripted_gateway)


@pytest.fixture
def retriever(store, mock_embedder):
    return KnowledgeRetriever(store, mock_embedder)


@pytest.fixture
def workflow_engine(scripted_gateway, retriever, context_manager):
    return DiagnosticWorkflowEngine(scripted_gateway, retriever, context_manager)


@pytest.fixture
def orchestrator(store, workflow_engine, context_manager):
    return OrchestrationEngine(
        store=store,
        classifier=QueryClassifier(store),
        screener=SafetyScreener(store),
        workflow_engine=workflow_engine,
        context_manager=context_manager,
    )


@pytest.fixture
def prompt_step():
    """Function naming the diagnostic step of a user prompt."""
    return step_of
