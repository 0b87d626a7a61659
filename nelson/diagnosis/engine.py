"""
Diagnostic Workflow Engine - Six-step clinical reasoning pipeline.

Steps run strictly in order, each feeding the next:

    symptom_analysis -> initial_assessment -> differential_diagnosis
    -> evidence_evaluation -> treatment_recommendations -> follow_up_guidance

Each step prompts the completion gateway and decodes the reply into a
tagged result. A reply that is not a JSON object, or the gateway's
fallback sentinel, is a degraded-confidence success: the raw text becomes
the step result and the pipeline carries on. The workflow record is
persisted after every step and never rolled back.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from nelson.context.manager import ContextManager
from nelson.diagnosis import prompts
from nelson.llm.gateway import DEFAULT_SYSTEM_PROMPT
from nelson.models.enums import DIAGNOSTIC_STEPS, DiagnosticStep, MedicalSpecialty
from nelson.models.records import Citation, DiagnosticWorkflow, ReasoningStep, utc_now
from nelson.models.results import Classification, RetrievedPassage, WorkflowResult
from nelson.retrieval.retriever import EVIDENCE_TOP_K, KnowledgeRetriever, to_citations
from nelson.store.audit import write_audit
from nelson.utils.parsing import (
    Parsed,
    ParseResult,
    Unavailable,
    coerce_confidence,
    decode_json_object,
    to_prompt_text,
)
from nelson.utils.protocols import CompletionGatewayProtocol


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIDENCE CONSTANTS
# =============================================================================

DEFAULT_STEP_CONFIDENCE = 0.7
DEFAULT_EVIDENCE_CONFIDENCE = 0.6
UNPARSED_CONFIDENCE = 0.6
UNAVAILABLE_CONFIDENCE = 0.5

UNDETERMINED_DIAGNOSIS = "Further evaluation needed"


# =============================================================================
# ACCUMULATED STATE
# =============================================================================


class WorkflowState(BaseModel):
    """
    Everything the pipeline has learned so far.

    Immutable: each step returns a copy with its own fields filled in.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    urgency: str
    specialty: str
    medical_context: dict[str, Any] = Field(default_factory=dict)

    symptoms: Any = None
    assessment: Any = None
    diagnoses: Any = None
    evaluation: Any = None
    top_diagnosis: Any = UNDETERMINED_DIAGNOSIS
    recommendations: Any = None
    safety_concerns: list[str] = Field(default_factory=list)
    guidance: Any = None
    passages: list[RetrievedPassage] = Field(default_factory=list)


class StepOutcome(BaseModel):
    """Result of one step: what to report and what to add to the state."""

    result: Any = None
    confidence: float
    updates: dict[str, Any] = Field(default_factory=dict)


def fallback_confidence(decoded: ParseResult) -> float:
    """Fixed confidence for a reply that could not be decoded."""
    if isinstance(decoded, Unavailable):
        return UNAVAILABLE_CONFIDENCE
    return UNPARSED_CONFIDENCE


def _safety_concerns(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [item if isinstance(item, str) else to_prompt_text(item) for item in value]
    return [to_prompt_text(value)]


# =============================================================================
# STEP INTERPRETERS
# =============================================================================


def interpret_symptom_analysis(state: WorkflowState, decoded: ParseResult) -> StepOutcome:
    if isinstance(decoded, Parsed):
        value = decoded.value
        return StepOutcome(
            result=value,
            confidence=coerce_confidence(value.get("confidence"), DEFAULT_STEP_CONFIDENCE),
            updates={"symptoms": value.get("symptoms") or state.message},
        )
    return StepOutcome(
        result=decoded.raw_text,
        confidence=fallback_confidence(decoded),
        updates={"symptoms": state.message},
    )


def interpret_initial_assessment(state: WorkflowState, decoded: ParseResult) -> StepOutcome:
    if isinstance(decoded, Parsed):
        value = decoded.value
        assessment = value.get("assessment") or to_prompt_text(value)
        return StepOutcome(
            result=assessment,
            confidence=coerce_confidence(value.get("confidence"), DEFAULT_STEP_CONFIDENCE),
            updates={"assessment": assessment},
        )
    return StepOutcome(
        result=decoded.raw_text,
        confidence=fallback_confidence(decoded),
        updates={"assessment": decoded.raw_text},
    )


def interpret_differential_diagnosis(state: WorkflowState, decoded: ParseResult) -> StepOutcome:
    if isinstance(decoded, Parsed):
        value = decoded.value
        diagnoses = value.get("diagnoses") or []
        return StepOutcome(
            result=diagnoses,
            confidence=coerce_confidence(value.get("confidence"), DEFAULT_STEP_CONFIDENCE),
            updates={"diagnoses": diagnoses},
        )
    return StepOutcome(
        result=decoded.raw_text,
        confidence=fallback_confidence(decoded),
        updates={"diagnoses": decoded.raw_text},
    )


def interpret_evidence_evaluation(state: WorkflowState, decoded: ParseResult) -> StepOutcome:
    if isinstance(decoded, Parsed):
        value = decoded.value
        evaluation = value.get("evaluation") or to_prompt_text(value)
        return StepOutcome(
            result=evaluation,
            confidence=coerce_confidence(value.get("confidence"), DEFAULT_EVIDENCE_CONFIDENCE),
            updates={
                "evaluation": evaluation,
                "top_diagnosis": value.get("top_diagnosis") or UNDETERMINED_DIAGNOSIS,
            },
        )
    return StepOutcome(
        result=decoded.raw_text,
        confidence=fallback_confidence(decoded),
        updates={"evaluation": decoded.raw_text, "top_diagnosis": UNDETERMINED_DIAGNOSIS},
    )


def interpret_treatment(state: WorkflowState, decoded: ParseResult) -> StepOutcome:
    if isinstance(decoded, Parsed):
        value = decoded.value
        recommendations = value.get("recommendations") or to_prompt_text(value)
        return StepOutcome(
            result=recommendations,
            confidence=coerce_confidence(value.get("confidence"), DEFAULT_STEP_CONFIDENCE),
            updates={
                "recommendations": recommendations,
                "safety_concerns": _safety_concerns(value.get("safety_concerns")),
            },
        )
    return StepOutcome(
        result=decoded.raw_text,
        confidence=fallback_confidence(decoded),
        updates={"recommendations": decoded.raw_text, "safety_concerns": []},
    )


def interpret_follow_up(state: WorkflowState, decoded: ParseResult) -> StepOutcome:
    if isinstance(decoded, Parsed):
        value = decoded.value
        guidance = value.get("guidance") or to_prompt_text(value)
        return StepOutcome(
            result=guidance,
            confidence=coerce_confidence(value.get("confidence"), DEFAULT_STEP_CONFIDENCE),
            updates={"guidance": guidance},
        )
    return StepOutcome(
        result=decoded.raw_text,
        confidence=fallback_confidence(decoded),
        updates={"guidance": decoded.raw_text},
    )


def build_prompt(step: DiagnosticStep, state: WorkflowState) -> str:
    """Render the fixed template of a step from the accumulated state."""
    if step == DiagnosticStep.SYMPTOM_ANALYSIS:
        return prompts.symptom_analysis_prompt(state.message, state.medical_context)
    if step == DiagnosticStep.INITIAL_ASSESSMENT:
        return prompts.initial_assessment_prompt(state.symptoms, state.specialty, state.medical_context)
    if step == DiagnosticStep.DIFFERENTIAL_DIAGNOSIS:
        return prompts.differential_diagnosis_prompt(state.symptoms, state.assessment, state.specialty)
    if step == DiagnosticStep.EVIDENCE_EVALUATION:
        return prompts.evidence_evaluation_prompt(state.diagnoses, state.symptoms, state.passages)
    if step == DiagnosticStep.TREATMENT_RECOMMENDATIONS:
        return prompts.treatment_prompt(state.top_diagnosis, state.symptoms, state.urgency)
    return prompts.follow_up_prompt(state.recommendations, state.urgency, state.symptoms)


INTERPRETERS = {
    DiagnosticStep.SYMPTOM_ANALYSIS: interpret_symptom_analysis,
    DiagnosticStep.INITIAL_ASSESSMENT: interpret_initial_assessment,
    DiagnosticStep.DIFFERENTIAL_DIAGNOSIS: interpret_differential_diagnosis,
    DiagnosticStep.EVIDENCE_EVALUATION: interpret_evidence_evaluation,
    DiagnosticStep.TREATMENT_RECOMMENDATIONS: interpret_treatment,
    DiagnosticStep.FOLLOW_UP_GUIDANCE: interpret_follow_up,
}


def evidence_search_text(symptoms: Any) -> str:
    """Concatenate symptoms into one search string."""
    if isinstance(symptoms, list):
        return " ".join(to_prompt_text(item) for item in symptoms)
    return to_prompt_text(symptoms or "")


def evidence_keyword_filter(specialty: str) -> Optional[str]:
    # General pediatrics is the no-match default, not a topic to filter on
    if specialty == MedicalSpecialty.GENERAL_PEDIATRICS.value:
        return None
    return specialty


# =============================================================================
# ENGINE
# =============================================================================


class DiagnosticWorkflowEngine:
    """Runs the six diagnostic steps for one query."""

    def __init__(
        self,
        gateway: CompletionGatewayProtocol,
        retriever: KnowledgeRetriever,
        context_manager: ContextManager,
    ):
        """
        Initialize the engine.

        Args:
            gateway: Completion gateway for every step
            retriever: Knowledge retriever for the evidence step
            context_manager: Persists workflow records
        """
        self.gateway = gateway
        self.retriever = retriever
        self.context_manager = context_manager

    async def run(
        self,
        message: str,
        classification: Classification,
        session_id: Optional[str] = None,
        query_id: Optional[str] = None,
        medical_context: Optional[dict[str, Any]] = None,
    ) -> WorkflowResult:
        """
        Run the full workflow.

        Args:
            message: The user's message
            classification: Classification of the message
            session_id: Session the query belongs to
            query_id: Query being answered
            medical_context: Prior medical context of the session

        Returns:
            WorkflowResult with the formatted answer and reasoning trail
        """
        medical_context = dict(medical_context or {})
        state = WorkflowState(
            message=message or "",
            urgency=classification.urgency_level,
            specialty=classification.medical_specialty,
            medical_context=medical_context,
        )

        workflow = await self.context_manager.create_workflow(DiagnosticWorkflow(
            session_id=session_id,
            query_id=query_id,
            workflow_type=classification.workflow_type,
            total_steps=len(DIAGNOSTIC_STEPS),
            step_data={
                "original_message": state.message,
                "classification": classification.model_dump(mode="json"),
                "medical_context": medical_context,
            },
        ))
        logger.info(f"Started diagnostic workflow {workflow.id} for query {query_id}")

        reasoning_steps: list[ReasoningStep] = []
        citations: list[Citation] = []

        for index, step in enumerate(DIAGNOSTIC_STEPS):
            if step == DiagnosticStep.EVIDENCE_EVALUATION:
                passages = await self._retrieve_evidence(state)
                state = state.model_copy(update={"passages": passages})
                citations = to_citations(passages)

            outcome = await self._run_step(step, state)
            state = state.model_copy(update=outcome.updates)
            reasoning_steps.append(ReasoningStep(
                step=step.value, result=outcome.result, confidence=outcome.confidence,
            ))

            is_last = index == len(DIAGNOSTIC_STEPS) - 1
            workflow = await self.context_manager.update_workflow(workflow.model_copy(update={
                "current_step": min(index + 2, len(DIAGNOSTIC_STEPS)),
                "completed_steps": [s.value for s in DIAGNOSTIC_STEPS[:index + 1]],
                "step_data": {
                    **workflow.step_data,
                    step.value: {"result": outcome.result, "confidence": outcome.confidence},
                },
                "confidence_scores": {**workflow.confidence_scores, step.value: outcome.confidence},
                "completed_at": utc_now() if is_last else None,
            }))

        confidences = [s.confidence for s in reasoning_steps]
        overall_confidence = sum(confidences) / len(confidences)

        answer = prompts.final_answer(
            symptoms=state.symptoms,
            assessment=state.assessment,
            diagnosis=state.top_diagnosis,
            evidence=state.evaluation,
            treatment=state.recommendations,
            follow_up=state.guidance,
            urgency=state.urgency,
            specialty=state.specialty,
        )

        await write_audit(self.context_manager.store, "diagnostic_workflow_completed", session_id, {
            "query_id": query_id,
            "workflow_id": workflow.id,
            "overall_confidence": overall_confidence,
            "citations_count": len(citations),
            "safety_flags": state.safety_concerns,
        })
        logger.info(
            f"Diagnostic workflow {workflow.id} completed (confidence={overall_confidence:.2f})"
        )

        return WorkflowResult(
            answer=answer,
            confidence=overall_confidence,
            citations=citations,
            reasoning_steps=reasoning_steps,
            safety_flags=list(state.safety_concerns),
            updated_context=self._updated_context(state),
            risk_level=state.urgency,
            workflow_id=workflow.id,
        )

    async def _run_step(self, step: DiagnosticStep, state: WorkflowState) -> StepOutcome:
        logger.debug(f"Running diagnostic step {step.value}")
        text = await self.gateway.complete(DEFAULT_SYSTEM_PROMPT, build_prompt(step, state))
        decoded = decode_json_object(text)

        if not isinstance(decoded, Parsed):
            logger.warning(f"Step {step.value} reply not structured ({type(decoded).__name__}), using raw text")

        return INTERPRETERS[step](state, decoded)

    async def _retrieve_evidence(self, state: WorkflowState) -> list[RetrievedPassage]:
        passages = await self.retriever.retrieve(
            evidence_search_text(state.symptoms),
            keyword_filter=evidence_keyword_filter(state.specialty),
            top_k=EVIDENCE_TOP_K,
        )
        if not passages:
            logger.info("No reference passages found; evaluating evidence without context")
        return passages

    @staticmethod
    def _updated_context(state: WorkflowState) -> dict[str, Any]:
        """Prior context plus the outcome of this run."""
        history = list(state.medical_context.get("session_history") or [])
        history.append({
            "timestamp": utc_now().isoformat(),
            "query": state.message,
            "diagnosis": state.top_diagnosis,
            "treatment": state.recommendations,
        })
        return {
            **state.medical_context,
            "last_symptoms": state.symptoms,
            "last_assessment": state.assessment,
            "last_diagnosis": state.top_diagnosis,
            "session_history": history,
        }
