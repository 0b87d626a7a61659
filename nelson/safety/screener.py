"""
Safety Screener - Deterministic emergency and high-risk detection.

Scans a message against a fixed table of danger categories. No model is
consulted: the response is one of three fixed templates chosen by the worst
severity found, so an emergency answer never depends on an upstream service.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from nelson.models.enums import AlertType, RiskAssessment
from nelson.models.records import ReasoningStep, SafetyAlert
from nelson.models.results import SafetyScreenResult, ScreenedAlert
from nelson.store.audit import write_audit
from nelson.store.base import SAFETY_ALERTS, RecordStore, best_effort


logger = logging.getLogger(__name__)


CRITICAL_SEVERITY = 9
HIGH_SEVERITY = 8


@dataclass(frozen=True)
class DangerCategory:
    """One row of the screening table."""

    name: str
    severity: int
    keywords: tuple[str, ...]
    message: str


# =============================================================================
# SCREENING TABLE
# =============================================================================

DANGER_CATEGORIES: list[DangerCategory] = [
    DangerCategory(
        "respiratory_distress", 10,
        ("can't breathe", "difficulty breathing", "gasping", "blue lips", "wheezing severely"),
        "EMERGENCY: Respiratory distress requires immediate medical attention. "
        "Call 911 or go to the nearest emergency room immediately.",
    ),
    DangerCategory(
        "cardiac_emergency", 10,
        ("chest pain", "heart racing", "fainting", "collapsed", "cardiac arrest"),
        "EMERGENCY: Potential cardiac emergency. Call 911 immediately.",
    ),
    DangerCategory(
        "neurological_emergency", 10,
        ("seizure", "unconscious", "won't wake up", "severe headache", "confusion", "not responding"),
        "EMERGENCY: Neurological emergency. Call 911 or seek immediate emergency care.",
    ),
    DangerCategory(
        "severe_allergic_reaction", 9,
        ("allergic reaction", "hives all over", "swollen face", "throat closing", "anaphylaxis"),
        "URGENT: Severe allergic reaction. Use EpiPen if available and call 911 immediately.",
    ),
    DangerCategory(
        "severe_bleeding", 9,
        ("bleeding heavily", "won't stop bleeding", "blood everywhere", "hemorrhage"),
        "URGENT: Severe bleeding requires immediate medical attention. "
        "Apply direct pressure and call 911.",
    ),
    DangerCategory(
        "poisoning", 9,
        ("poisoned", "ingested", "overdose", "toxic", "poison control"),
        "URGENT: Potential poisoning. Call Poison Control (1-800-222-1222) "
        "and/or 911 immediately.",
    ),
    DangerCategory(
        "high_fever_infant", 8,
        ("fever", "temperature", "hot", "infant", "newborn", "0-3 months"),
        "HIGH PRIORITY: Fever in infants under 3 months requires immediate medical evaluation.",
    ),
    DangerCategory(
        "dehydration_severe", 8,
        ("severely dehydrated", "no wet diapers", "sunken eyes", "lethargic"),
        "HIGH PRIORITY: Severe dehydration requires immediate medical attention.",
    ),
]


# =============================================================================
# RESPONSE TEMPLATES
# =============================================================================

EMERGENCY_TEMPLATE = """🚨 **MEDICAL EMERGENCY DETECTED** 🚨

{advisory}

**IMMEDIATE ACTIONS:**
1. **CALL 911 NOW** or go to the nearest emergency room
2. Stay with the patient and monitor vital signs
3. If trained, provide appropriate first aid
4. Have someone meet emergency responders
5. Gather any relevant medical information/medications

**DO NOT DELAY SEEKING PROFESSIONAL MEDICAL CARE**

---

**Important:** This is an automated safety alert based on your description: "{excerpt}..."

AI medical assistance cannot replace emergency medical services. The symptoms you've described require immediate professional medical evaluation and treatment.

**Emergency Numbers:**
- Emergency Medical Services: **911**
- Poison Control: **1-800-222-1222**

Time is critical in medical emergencies. Please seek help immediately."""

HIGH_PRIORITY_TEMPLATE = """⚠️ **HIGH PRIORITY MEDICAL CONCERN** ⚠️

{advisory}

**RECOMMENDED ACTIONS:**
1. Contact your pediatrician or healthcare provider immediately
2. If after hours, call the on-call service or consider urgent care
3. Monitor symptoms closely and watch for worsening
4. Be prepared to seek emergency care if condition deteriorates

**When to seek immediate emergency care:**
- Symptoms worsen rapidly
- New concerning symptoms develop
- Patient becomes less responsive
- Breathing becomes difficult
- Signs of severe dehydration appear

---

**Your Query:** "{excerpt}..."

While this situation requires prompt medical attention, I can provide some general guidance while you arrange care with a healthcare professional.

**Next Steps:**
1. Document symptoms with times and details
2. Check temperature and vital signs if possible
3. Prepare list of current medications
4. Contact healthcare provider within the next few hours

**⚠️ Medical Disclaimer:** This assessment is for guidance only. Please consult with a qualified healthcare provider for proper evaluation and treatment."""

STANDARD_TEMPLATE = """## Medical Guidance

Thank you for your question about: "{excerpt}..."

Based on my analysis, while your concern doesn't appear to require immediate emergency care, all medical symptoms in children should be evaluated by appropriate healthcare professionals.

**General Recommendations:**
1. Monitor symptoms and document any changes
2. Contact your pediatrician if symptoms persist or worsen
3. Seek urgent care if you become concerned about rapid changes
4. Trust your parental instincts - you know your child best

**When to seek immediate medical attention:**
- Difficulty breathing or rapid breathing
- High fever (especially in infants under 3 months)
- Signs of dehydration
- Persistent vomiting or inability to keep fluids down
- Unusual lethargy or difficulty waking
- Any symptoms that worry you as a parent

**Educational Information:**
I can provide general information about common pediatric conditions, but this should never replace professional medical evaluation, especially for new or concerning symptoms.

---

**⚠️ Important Medical Disclaimer:**
This response is for educational purposes only and should not replace professional medical advice, diagnosis, or treatment. Always consult with a qualified healthcare provider regarding medical concerns about your child.

Would you like me to provide some general educational information about common pediatric conditions, or do you have specific questions about when to seek medical care?"""

# (template, echo length, confidence) per risk assessment
RESPONSE_PROFILES: dict[RiskAssessment, tuple[str, int, float]] = {
    RiskAssessment.CRITICAL: (EMERGENCY_TEMPLATE, 100, 1.0),
    RiskAssessment.HIGH: (HIGH_PRIORITY_TEMPLATE, 150, 0.95),
    RiskAssessment.LOW: (STANDARD_TEMPLATE, 100, 0.8),
}


# =============================================================================
# SCREENING
# =============================================================================


def scan(message: str) -> list[ScreenedAlert]:
    """
    Scan a message against the screening table.

    At most one alert is produced per category: the first keyword that
    matches in table order.
    """
    text_lower = (message or "").lower()
    alerts = []

    for category in DANGER_CATEGORIES:
        for keyword in category.keywords:
            if keyword.lower() in text_lower:
                alerts.append(ScreenedAlert(
                    category=category.name,
                    severity=category.severity,
                    message=category.message,
                    triggered_keyword=keyword,
                    requires_immediate_action=category.severity >= CRITICAL_SEVERITY,
                ))
                break

    return alerts


def assess_risk(alerts: list[ScreenedAlert]) -> RiskAssessment:
    worst = max((alert.severity for alert in alerts), default=0)
    if worst >= CRITICAL_SEVERITY:
        return RiskAssessment.CRITICAL
    if worst >= HIGH_SEVERITY:
        return RiskAssessment.HIGH
    return RiskAssessment.LOW


def render_response(risk: RiskAssessment, alerts: list[ScreenedAlert], message: str) -> tuple[str, float]:
    """
    Fill the template for a risk assessment.

    Returns:
        Tuple of (response text, confidence)
    """
    template, echo_length, confidence = RESPONSE_PROFILES[risk]

    advisory = ""
    if risk == RiskAssessment.CRITICAL:
        advisory = next(a.message for a in alerts if a.severity >= CRITICAL_SEVERITY)
    elif risk == RiskAssessment.HIGH:
        advisory = alerts[0].message

    return template.format(advisory=advisory, excerpt=(message or "")[:echo_length]), confidence


class SafetyScreener:
    """Rule-based safety screening with persisted alerts."""

    def __init__(self, store: Optional[RecordStore] = None):
        """
        Initialize the screener.

        Args:
            store: Record store for alerts and the audit trail (optional)
        """
        self.store = store

    async def screen(
        self,
        message: Optional[str],
        session_id: Optional[str] = None,
        query_id: Optional[str] = None,
    ) -> SafetyScreenResult:
        """
        Screen a message and produce the safety response.

        Every triggered alert is persisted before returning. A failed write
        is logged and the alert is still returned to the caller.

        Args:
            message: Raw user message
            session_id: Session the query belongs to
            query_id: Query being screened

        Returns:
            SafetyScreenResult
        """
        message = message or ""
        alerts = scan(message)
        risk = assess_risk(alerts)
        immediate_action = any(alert.requires_immediate_action for alert in alerts)
        flags = [alert.category for alert in alerts]

        for alert in alerts:
            logger.warning(
                f"Safety alert triggered: {alert.category} (severity: {alert.severity})"
            )
            await self._persist_alert(alert, session_id, query_id)

        answer, confidence = render_response(risk, alerts, message)

        if self.store is not None:
            await write_audit(self.store, "safety_monitoring_completed", session_id, {
                "query_id": query_id,
                "risk_assessment": risk.value,
                "safety_alerts_triggered": len(alerts),
                "immediate_action_required": immediate_action,
                "categories_triggered": list(dict.fromkeys(flags)),
            })

        return SafetyScreenResult(
            answer=answer,
            confidence=confidence,
            safety_alerts=alerts,
            safety_flags=flags,
            risk_assessment=risk,
            immediate_action_required=immediate_action,
            reasoning_steps=[ReasoningStep(
                step="safety_monitoring",
                result=f"Risk assessment: {risk.value}. {len(alerts)} safety alerts triggered.",
                confidence=confidence,
            )],
        )

    async def _persist_alert(
        self,
        alert: ScreenedAlert,
        session_id: Optional[str],
        query_id: Optional[str],
    ) -> None:
        if self.store is None:
            return
        record = SafetyAlert(
            session_id=session_id,
            query_id=query_id,
            alert_type=(
                AlertType.EMERGENCY if alert.severity >= CRITICAL_SEVERITY else AlertType.HIGH_RISK
            ),
            alert_message=alert.message,
            triggered_keywords=[alert.triggered_keyword],
            severity_score=alert.severity,
        )
        await best_effort(
            self.store.insert(SAFETY_ALERTS, record.model_dump(mode="json")),
            f"safety alert {alert.category}",
        )
