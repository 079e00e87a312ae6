"""
Metrics Collection for the material sync service

Collects and exposes in-memory metrics for:
- Reconciliation passes (started, completed, failed)
- Per-material outcomes (resolved, skipped, failed)
- Inventory adjustments submitted to the platform
- Order webhooks (processed, failed)
- Pass durations (average, p95)

Metrics live only for the lifetime of the process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class PassMetrics:
    """Metrics for periodic reconciliation passes."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    last_started_at: Optional[datetime] = None
    last_completed_at: Optional[datetime] = None


@dataclass
class MaterialMetrics:
    """Per-material outcome counts."""
    resolved: int = 0
    skipped: int = 0
    failed: int = 0
    adjustments: int = 0

    # By material code
    by_code: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"resolved": 0, "skipped": 0, "failed": 0, "adjustments": 0})
    )


@dataclass
class WebhookMetrics:
    """Order webhook counts."""
    processed: int = 0
    failed: int = 0
    decrements: int = 0


@dataclass
class TimingMetrics:
    """Pass duration samples (keep last N for percentile calculations)."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    def add_sample(self, duration_ms: float):
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

    def get_average(self) -> float:
        return statistics.mean(self.samples) if self.samples else 0.0

    def get_p95(self) -> float:
        if not self.samples:
            return 0.0
        sorted_samples = sorted(self.samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class SyncMetrics:
    """
    Thread-safe metrics collector for reconciliation and webhook activity.

    Usage:
        metrics = SyncMetrics.instance()
        metrics.record_pass_started()
        metrics.record_material_outcome("ALU", "resolved", adjustments=2)
    """

    _instance: Optional["SyncMetrics"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.passes = PassMetrics()
        self.materials = MaterialMetrics()
        self.webhooks = WebhookMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "SyncMetrics":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Pass Metrics
    # =========================================================================

    def record_pass_started(self):
        with self._lock:
            self.passes.started += 1
            self.passes.last_started_at = datetime.utcnow()

    def record_pass_completed(self, duration_ms: float = None):
        with self._lock:
            self.passes.completed += 1
            self.passes.last_completed_at = datetime.utcnow()
            if duration_ms is not None:
                self.timings.add_sample(duration_ms)

    def record_pass_failed(self):
        with self._lock:
            self.passes.failed += 1

    # =========================================================================
    # Material Metrics
    # =========================================================================

    def record_material_outcome(self, material_code: str, status: str, adjustments: int = 0):
        """Record one material's outcome; status is resolved, skipped or failed."""
        status = status.lower()
        with self._lock:
            setattr(self.materials, status, getattr(self.materials, status) + 1)
            self.materials.adjustments += adjustments
            self.materials.by_code[material_code][status] += 1
            self.materials.by_code[material_code]["adjustments"] += adjustments

    # =========================================================================
    # Webhook Metrics
    # =========================================================================

    def record_webhook_processed(self, decrements: int = 0):
        with self._lock:
            self.webhooks.processed += 1
            self.webhooks.decrements += decrements

    def record_webhook_failed(self):
        with self._lock:
            self.webhooks.failed += 1

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "passes": {
                    "started": self.passes.started,
                    "completed": self.passes.completed,
                    "failed": self.passes.failed,
                    "last_started_at": self.passes.last_started_at.isoformat() if self.passes.last_started_at else None,
                    "last_completed_at": self.passes.last_completed_at.isoformat() if self.passes.last_completed_at else None,
                },
                "materials": {
                    "resolved": self.materials.resolved,
                    "skipped": self.materials.skipped,
                    "failed": self.materials.failed,
                    "adjustments": self.materials.adjustments,
                    "by_code": {code: dict(counts) for code, counts in self.materials.by_code.items()},
                },
                "webhooks": {
                    "processed": self.webhooks.processed,
                    "failed": self.webhooks.failed,
                    "decrements": self.webhooks.decrements,
                },
                "timings": {
                    "average_ms": self.timings.get_average(),
                    "p95_ms": self.timings.get_p95(),
                    "sample_count": len(self.timings.samples),
                },
            }

    def reset(self):
        """Clear all counters."""
        with self._lock:
            self.passes = PassMetrics()
            self.materials = MaterialMetrics()
            self.webhooks = WebhookMetrics()
            self.timings = TimingMetrics()


def get_metrics() -> SyncMetrics:
    """Get the global metrics collector."""
    return SyncMetrics.instance()
