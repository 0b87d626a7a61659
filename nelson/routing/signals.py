"""
Classification Signals - Deterministic keyword tables for query routing.

All matching is case-insensitive substring matching against the lower-cased
message. Table order is significant: the first emergency or urgent keyword
found is the one reported, and specialty ties go to the earlier entry.
"""

from typing import Any, Optional

from nelson.models.enums import MedicalSpecialty, UrgencyLevel


# =============================================================================
# URGENCY KEYWORDS
# =============================================================================

EMERGENCY_KEYWORDS = [
    "can't breathe",
    "difficulty breathing",
    "chest pain",
    "severe pain",
    "unconscious",
    "won't wake up",
    "unresponsive",
    "seizure",
    "bleeding heavily",
    "choking",
    "allergic reaction",
    "severe headache",
    "high fever",
    "emergency",
    "urgent",
    "911",
    "hospital",
]

URGENT_KEYWORDS = [
    "fever",
    "vomiting",
    "diarrhea",
    "rash",
    "pain",
    "swollen",
    "infected",
    "won't eat",
    "dehydrated",
    "lethargic",
    "concerning",
    "worried",
]

# Weight of each urgency level in the routing confidence
URGENCY_WEIGHTS: dict[UrgencyLevel, float] = {
    UrgencyLevel.EMERGENCY: 1.0,
    UrgencyLevel.URGENT: 0.8,
    UrgencyLevel.ROUTINE: 0.6,
}


# =============================================================================
# SPECIALTY KEYWORDS
# =============================================================================

SPECIALTY_KEYWORDS: dict[MedicalSpecialty, list[str]] = {
    MedicalSpecialty.CARDIOLOGY: ["heart", "chest pain", "murmur", "cardiac", "palpitations"],
    MedicalSpecialty.NEUROLOGY: ["headache", "seizure", "neurological", "brain", "development delay"],
    MedicalSpecialty.RESPIRATORY: ["breathing", "cough", "wheeze", "asthma", "pneumonia"],
    MedicalSpecialty.GASTROENTEROLOGY: ["stomach", "vomiting", "diarrhea", "constipation", "feeding"],
    MedicalSpecialty.DERMATOLOGY: ["rash", "skin", "eczema", "acne", "lesion"],
    MedicalSpecialty.ORTHOPEDICS: ["bone", "fracture", "joint", "limping", "injury"],
    MedicalSpecialty.ENDOCRINOLOGY: ["diabetes", "growth", "hormone", "thyroid", "weight"],
    MedicalSpecialty.INFECTIOUS_DISEASE: ["fever", "infection", "viral", "bacterial", "immunization"],
}

# Confidence reported for general_pediatrics and the floor for any specialty
BASELINE_SPECIALTY_CONFIDENCE = 0.5


# =============================================================================
# COMPLEXITY PHRASES
# =============================================================================

LONG_MESSAGE_WORDS = 50
HISTORY_PHRASES = ["history of", "previous"]
MULTIPLE_SYMPTOM_PHRASES = ["multiple", "several"]
MAX_COMPLEXITY = 5


# =============================================================================
# DETECTION
# =============================================================================


def first_match(text_lower: str, keywords: list[str]) -> Optional[str]:
    """Return the first keyword contained in the text, in table order."""
    for keyword in keywords:
        if keyword.lower() in text_lower:
            return keyword
    return None


def detect_urgency(text_lower: str) -> tuple[UrgencyLevel, Optional[str]]:
    """
    Detect the urgency level of a message.

    Returns:
        Tuple of (urgency, emergency keyword that fired or None)
    """
    keyword = first_match(text_lower, EMERGENCY_KEYWORDS)
    if keyword:
        return UrgencyLevel.EMERGENCY, keyword
    if first_match(text_lower, URGENT_KEYWORDS):
        return UrgencyLevel.URGENT, None
    return UrgencyLevel.ROUTINE, None


def score_specialties(text_lower: str) -> dict[MedicalSpecialty, float]:
    """Fraction of each specialty's keywords present in the text."""
    scores = {}
    for specialty, keywords in SPECIALTY_KEYWORDS.items():
        matches = sum(1 for keyword in keywords if keyword in text_lower)
        scores[specialty] = matches / len(keywords)
    return scores


def detect_specialty(text_lower: str) -> tuple[MedicalSpecialty, float]:
    """
    Pick the best-matching specialty.

    The highest score wins; an equal later score never displaces an earlier
    one. With no matches at all the query is general pediatrics.

    Returns:
        Tuple of (specialty, specialty confidence)
    """
    best_specialty = MedicalSpecialty.GENERAL_PEDIATRICS
    best_score = 0.0

    for specialty, score in score_specialties(text_lower).items():
        if score > best_score:
            best_specialty = specialty
            best_score = score

    return best_specialty, max(BASELINE_SPECIALTY_CONFIDENCE, best_score)


def detect_complexity(
    text_lower: str,
    urgency: UrgencyLevel,
    medical_context: Optional[dict[str, Any]] = None,
) -> int:
    """Score complexity on a 1-5 scale."""
    score = 1

    if len(text_lower.split(" ")) > LONG_MESSAGE_WORDS:
        score += 1
    if first_match(text_lower, HISTORY_PHRASES):
        score += 1
    if first_match(text_lower, MULTIPLE_SYMPTOM_PHRASES):
        score += 1
    if urgency == UrgencyLevel.URGENT:
        score += 1
    if urgency == UrgencyLevel.EMERGENCY:
        score = MAX_COMPLEXITY

    # Prior context makes any query harder to reason about
    if medical_context:
        score = min(score + 1, MAX_COMPLEXITY)

    return score
