"""Middleware for the gridserve API.

- Correlation context for request tracing
"""

from gridserve.api.middleware.correlation import CorrelationMiddleware

__all__ = [
    "CorrelationMiddleware",
]
