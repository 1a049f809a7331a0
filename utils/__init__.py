"""Shared utilities for the backend."""
from utils.log import audit_logger, get_logger, scrub, scrub_text, setup_logging

__all__ = [
    "audit_logger",
    "get_logger",
    "scrub",
    "scrub_text",
    "setup_logging",
]
