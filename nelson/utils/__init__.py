"""Shared utilities: logging, parsing, protocols."""

from nelson.utils.logging import setup_logging

__all__ = ["setup_logging"]
