"""
Nelson - Pediatric medical assistant.

Query orchestration and the six-step diagnostic workflow behind the chat
client: classification, safety screening, retrieval over the Nelson
Textbook of Pediatrics, and per-session medical context.
"""

__version__ = "1.0.0"
