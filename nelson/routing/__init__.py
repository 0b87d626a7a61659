"""
Query routing - deterministic classification ahead of the branch decision.
"""

from nelson.routing.classifier import QueryClassifier, select_workflow_type
from nelson.routing.signals import detect_complexity, detect_specialty, detect_urgency

__all__ = [
    "QueryClassifier",
    "detect_complexity",
    "detect_specialty",
    "detect_urgency",
    "select_workflow_type",
]
