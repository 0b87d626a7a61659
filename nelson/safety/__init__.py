"""Deterministic safety screening."""

from nelson.safety.screener import DANGER_CATEGORIES, SafetyScreener, assess_risk, scan

__all__ = ["DANGER_CATEGORIES", "SafetyScreener", "assess_risk", "scan"]
