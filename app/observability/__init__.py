"""
Observability module - Logging, Metrics, and Tracing.
"""

from app.observability.logging import get_logger, log_context, setup_logging
from app.observability.metrics import metrics
from app.observability.tracing import model_span, record_usage, setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "model_span",
    "record_usage",
    "setup_tracing",
]
