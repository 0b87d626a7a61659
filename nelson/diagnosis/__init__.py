"""Six-step diagnostic reasoning workflow."""

from nelson.diagnosis.engine import DiagnosticWorkflowEngine, WorkflowState

__all__ = ["DiagnosticWorkflowEngine", "WorkflowState"]
