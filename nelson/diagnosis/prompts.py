"""
Prompt templates for the six diagnostic steps and the final answer.
"""

import json
from typing import Any

from nelson.models.results import RetrievedPassage
from nelson.utils.parsing import to_prompt_text


EVIDENCE_EXCERPT_CHARS = 200

NO_EVIDENCE_NOTE = "No reference passages were found for these symptoms."


# =============================================================================
# STEP TEMPLATES
# =============================================================================

SYMPTOM_ANALYSIS_PROMPT = """As a pediatric medical AI, analyze the following patient description and extract key symptoms:

Patient Description: "{message}"

Previous Context: {context}

Please provide:
1. List of primary symptoms
2. List of associated symptoms
3. Duration and onset if mentioned
4. Severity indicators
5. Any concerning features

Format as JSON with confidence score."""

INITIAL_ASSESSMENT_PROMPT = """As a pediatric {specialty} specialist, provide an initial medical assessment:

Symptoms: {symptoms}
Context: {context}

Provide:
1. Initial clinical impression
2. Key differential considerations
3. Recommended next steps
4. Red flags to watch for

Format as JSON with confidence score."""

DIFFERENTIAL_DIAGNOSIS_PROMPT = """Based on the symptoms and initial assessment, generate a differential diagnosis list:

Symptoms: {symptoms}
Initial Assessment: {assessment}
Specialty Focus: {specialty}

Provide top 5 differential diagnoses ranked by likelihood, each with:
1. Diagnosis name
2. Supporting evidence
3. Likelihood score (0-1)
4. Key distinguishing features

Format as JSON with confidence score."""

EVIDENCE_EVALUATION_PROMPT = """Evaluate the evidence for these differential diagnoses using medical literature:

Diagnoses: {diagnoses}
Symptoms: {symptoms}

Medical Evidence:
{evidence}

Provide:
1. Most likely diagnosis with evidence
2. Evidence quality assessment
3. Confidence in diagnosis
4. Alternative considerations

Format as JSON."""

TREATMENT_PROMPT = """Provide evidence-based treatment recommendations for pediatric patients:

Primary Diagnosis: {diagnosis}
Symptoms: {symptoms}
Urgency Level: {urgency}

Include:
1. First-line treatment options
2. Dosing considerations for pediatric patients
3. Monitoring requirements
4. When to seek immediate care
5. Parent/caregiver instructions

Format as JSON with confidence score and safety concerns."""

FOLLOW_UP_PROMPT = """Provide comprehensive follow-up guidance:

Treatment Plan: {treatment}
Urgency Level: {urgency}
Original Symptoms: {symptoms}

Include:
1. Timeline for improvement
2. Warning signs requiring immediate care
3. Follow-up appointment recommendations
4. Home care instructions
5. When to contact healthcare provider

Format as JSON with confidence score."""


# =============================================================================
# FINAL ANSWER
# =============================================================================

FINAL_ANSWER_TEMPLATE = """## Medical Assessment

**Primary Symptoms:** {symptoms}

**Clinical Assessment:** {assessment}

**Most Likely Diagnosis:** {diagnosis}

**Evidence Summary:** {evidence}

**Treatment Recommendations:** {treatment}

**Follow-up Guidance:** {follow_up}

---

**⚠️ Important Medical Disclaimer:**
This assessment is for educational purposes only and should not replace professional medical evaluation. Please consult with a qualified healthcare provider for proper diagnosis and treatment, especially if symptoms worsen or new concerns arise.

**Urgency Level:** {urgency}
**Specialty Focus:** {specialty}"""


def _json(value: Any) -> str:
    return json.dumps(value, default=str)


def symptom_analysis_prompt(message: str, medical_context: dict) -> str:
    return SYMPTOM_ANALYSIS_PROMPT.format(
        message=message,
        context=json.dumps(medical_context or {}, indent=2, default=str),
    )


def initial_assessment_prompt(symptoms: Any, specialty: str, medical_context: dict) -> str:
    return INITIAL_ASSESSMENT_PROMPT.format(
        specialty=specialty,
        symptoms=_json(symptoms),
        context=_json(medical_context or {}),
    )


def differential_diagnosis_prompt(symptoms: Any, assessment: Any, specialty: str) -> str:
    return DIFFERENTIAL_DIAGNOSIS_PROMPT.format(
        symptoms=_json(symptoms),
        assessment=to_prompt_text(assessment),
        specialty=specialty,
    )


def format_evidence(passages: list[RetrievedPassage]) -> str:
    """One bullet per passage with a truncated excerpt."""
    if not passages:
        return NO_EVIDENCE_NOTE
    return "\n".join(
        f"- {passage.chunk_text[:EVIDENCE_EXCERPT_CHARS]}..." for passage in passages
    )


def evidence_evaluation_prompt(
    diagnoses: Any,
    symptoms: Any,
    passages: list[RetrievedPassage],
) -> str:
    return EVIDENCE_EVALUATION_PROMPT.format(
        diagnoses=_json(diagnoses),
        symptoms=_json(symptoms),
        evidence=format_evidence(passages),
    )


def treatment_prompt(diagnosis: Any, symptoms: Any, urgency: str) -> str:
    return TREATMENT_PROMPT.format(
        diagnosis=to_prompt_text(diagnosis),
        symptoms=_json(symptoms),
        urgency=urgency,
    )


def follow_up_prompt(treatment: Any, urgency: str, symptoms: Any) -> str:
    return FOLLOW_UP_PROMPT.format(
        treatment=to_prompt_text(treatment),
        urgency=urgency,
        symptoms=_json(symptoms),
    )


def final_answer(
    symptoms: Any,
    assessment: Any,
    diagnosis: Any,
    evidence: Any,
    treatment: Any,
    follow_up: Any,
    urgency: str,
    specialty: str,
) -> str:
    """Assemble the user-facing answer with the disclaimer block."""
    return FINAL_ANSWER_TEMPLATE.format(
        symptoms=to_prompt_text(symptoms),
        assessment=to_prompt_text(assessment),
        diagnosis=to_prompt_text(diagnosis),
        evidence=to_prompt_text(evidence),
        treatment=to_prompt_text(treatment),
        follow_up=to_prompt_text(follow_up),
        urgency=urgency,
        specialty=specialty,
    )
