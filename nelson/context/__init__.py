"""Session context, conversation summaries, and workflow records."""

from nelson.context.manager import ContextManager, context_age

__all__ = ["ContextManager", "context_age"]
