"""Observability module for gridserve.

Structured logging with request correlation IDs.
"""

from gridserve.observability.logging import (
    LogContext,
    configure_logging,
    correlation_id_var,
    request_id_var,
)

__all__ = [
    "configure_logging",
    "LogContext",
    "request_id_var",
    "correlation_id_var",
]
