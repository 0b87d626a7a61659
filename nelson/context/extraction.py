"""
Clinical fact extraction for conversation summaries.

Fixed keyword and regex tables pull symptoms, medications, allergies, and
previously discussed diagnoses out of a session transcript.
"""

import re
from typing import Any, Iterable, Optional

from nelson.models.enums import DiagnosticStep
from nelson.models.records import utc_now


SYMPTOM_KEYWORDS = [
    "fever", "cough", "vomiting", "diarrhea", "rash", "pain", "headache",
    "sore throat", "runny nose", "ear ache", "stomach ache", "nausea",
    "fatigue", "lethargy", "irritable", "crying", "not eating", "difficulty breathing",
]

MEDICATION_PATTERNS = [
    re.compile(r"tylenol|acetaminophen", re.IGNORECASE),
    re.compile(r"ibuprofen|advil|motrin", re.IGNORECASE),
    re.compile(r"amoxicillin|antibiotic", re.IGNORECASE),
    re.compile(r"inhaler|albuterol", re.IGNORECASE),
    re.compile(r"medication|medicine|drug", re.IGNORECASE),
]

ALLERGY_PATTERNS = [
    re.compile(r"allergic to [a-zA-Z ]+", re.IGNORECASE),
    re.compile(r"allergy to [a-zA-Z ]+", re.IGNORECASE),
    re.compile(r"penicillin allergy", re.IGNORECASE),
    re.compile(r"food allergy", re.IGNORECASE),
    re.compile(r"environmental allergy", re.IGNORECASE),
]

_ALLERGY_PREFIX = re.compile(r"allergic to |allergy to ", re.IGNORECASE)

PENDING_ANSWER = "Processing..."


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def build_transcript(queries: list[dict[str, Any]]) -> str:
    """
    Render queries (oldest first) as a User/Assistant transcript.

    Unanswered queries show a placeholder answer.
    """
    return "\n".join(
        f"User: {q.get('user_question') or ''}\n"
        f"Assistant: {q.get('answer') or PENDING_ANSWER}\n---"
        for q in queries
    )


def basic_summary(transcript: str) -> str:
    """Deterministic summary used when no model summary is available."""
    lines = [line for line in transcript.split("\n") if line.strip()]
    user_turns = [line for line in lines if line.startswith("User:")][:3]
    return (
        "Medical conversation summary:\n"
        f"Primary concerns: {'; '.join(user_turns)}\n"
        f"Conversation length: {len(lines)} exchanges\n"
        f"Generated: {utc_now().isoformat()}"
    )


def extract_symptoms(text: str) -> list[str]:
    text_lower = text.lower()
    return [symptom for symptom in SYMPTOM_KEYWORDS if symptom in text_lower]


def extract_medications(text: str) -> list[str]:
    found = []
    for pattern in MEDICATION_PATTERNS:
        found.extend(match.lower() for match in pattern.findall(text))
    return _unique(found)


def extract_allergies(text: str) -> list[str]:
    found = []
    for pattern in ALLERGY_PATTERNS:
        for match in pattern.findall(text):
            allergen = _ALLERGY_PREFIX.sub("", match).strip()
            if len(allergen) > 2:
                found.append(allergen)
    return _unique(found)


def _diagnosis_name(entry: Any) -> Optional[str]:
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, dict):
        return entry.get("name") or entry.get("diagnosis")
    return None


def extract_diagnoses(queries: list[dict[str, Any]]) -> list[str]:
    """
    Collect diagnosis names from stored differential-diagnosis steps.

    The step result is either a list of diagnoses or an object holding one
    under ``diagnoses``; each diagnosis is a name or an object with a
    ``name``/``diagnosis`` field.
    """
    names = []
    for query in queries:
        for step in query.get("reasoning_steps") or []:
            if not isinstance(step, dict) or step.get("step") != DiagnosticStep.DIFFERENTIAL_DIAGNOSIS.value:
                continue
            result = step.get("result")
            if isinstance(result, dict):
                result = result.get("diagnoses")
            if not isinstance(result, list):
                continue
            for entry in result:
                name = _diagnosis_name(entry)
                if name:
                    names.append(name)
    return _unique(names)
