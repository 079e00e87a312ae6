"""
Observability Module for the material sync service

Provides:
- Structured logging with correlation IDs
- In-memory metrics for reconciliation passes and order webhooks
"""

from core.observability.metrics import (
    SyncMetrics,
    get_metrics,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "SyncMetrics",
    "get_metrics",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
