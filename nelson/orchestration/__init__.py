"""Top-level query orchestration."""

from nelson.orchestration.engine import OrchestrationEngine

__all__ = ["OrchestrationEngine"]
