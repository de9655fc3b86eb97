"""
Observability module - Logging, Metrics, and Tracing.
"""

from webconsole.observability.logging import get_logger, log_context, mask_token, setup_logging
from webconsole.observability.metrics import metrics
from webconsole.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "mask_token",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
