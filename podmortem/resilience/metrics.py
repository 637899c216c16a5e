"""
podmortem/resilience/metrics.py - Dispatch observability

Tracks the outcome of every dispatch: which provider answered, how many
attempts it took, and how often callers were served a fallback.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger("podmortem.metrics")


class DispatchOutcome(Enum):
    """How a dispatch ended."""
    SUCCESS = "success"
    FALLBACK = "fallback"
    ERROR = "error"


@dataclass
class DispatchRecord:
    """Metrics for a single dispatch."""

    analysis_id: str
    provider_id: str
    outcome: DispatchOutcome
    attempts: int
    latency_ms: int
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


class DispatchMetrics:
    """
    Collects and aggregates dispatch metrics.

    Maintains a rolling window of recent dispatches for analysis.
    """

    def __init__(self, window_size: int = 1000):
        self.window_size = window_size
        self._lock = threading.Lock()
        self._records: Deque[DispatchRecord] = deque(maxlen=window_size)
        self._totals: Dict[DispatchOutcome, int] = {o: 0 for o in DispatchOutcome}
        self._by_provider: Dict[str, Dict[str, int]] = {}
        self._total_latency_ms = 0

    def record(
        self,
        analysis_id: str,
        provider_id: str,
        outcome: DispatchOutcome,
        attempts: int,
        latency_ms: int,
        error: Optional[str] = None,
    ) -> None:
        """
        Record the outcome of one dispatch.

        Args:
            analysis_id: Analysis the dispatch was for
            provider_id: Provider that was requested
            outcome: How the dispatch ended
            attempts: Provider invocations made (0 if none)
            latency_ms: Wall-clock time spent on the provider path
            error: Error message if the provider path failed
        """
        rec = DispatchRecord(
            analysis_id=analysis_id,
            provider_id=provider_id,
            outcome=outcome,
            attempts=attempts,
            latency_ms=latency_ms,
            error=error,
        )
        with self._lock:
            self._records.append(rec)
            self._totals[outcome] += 1
            self._total_latency_ms += latency_ms
            counts = self._by_provider.setdefault(
                provider_id, {o.value: 0 for o in DispatchOutcome}
            )
            counts[outcome.value] += 1

        if outcome == DispatchOutcome.SUCCESS:
            logger.debug(
                f"Dispatch {analysis_id} via {provider_id}: "
                f"attempts={attempts}, latency={latency_ms}ms"
            )
        else:
            logger.info(
                f"Dispatch {analysis_id} via {provider_id} ended with {outcome.value}: "
                f"attempts={attempts}, latency={latency_ms}ms, error={error}"
            )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get aggregated statistics.

        Returns:
            Dict with totals, rates, and per-provider outcome counts
        """
        with self._lock:
            total = sum(self._totals.values())
            recent = len(self._records)
            return {
                "total_dispatches": total,
                "successes": self._totals[DispatchOutcome.SUCCESS],
                "fallbacks": self._totals[DispatchOutcome.FALLBACK],
                "errors": self._totals[DispatchOutcome.ERROR],
                "fallback_rate": round(
                    self._totals[DispatchOutcome.FALLBACK] / total if total else 0.0, 3
                ),
                "avg_latency_ms": round(self._total_latency_ms / total) if total else 0,
                "by_provider": {k: dict(v) for k, v in self._by_provider.items()},
                "recent_window_size": recent,
            }

    def get_recent(self, count: int = 10) -> List[Dict[str, Any]]:
        """Recent dispatches, oldest first, for debugging."""
        with self._lock:
            recent = list(self._records)[-count:]
        return [
            {
                "analysis_id": r.analysis_id,
                "provider_id": r.provider_id,
                "outcome": r.outcome.value,
                "attempts": r.attempts,
                "latency_ms": r.latency_ms,
                "error": r.error,
                "timestamp": r.timestamp,
            }
            for r in recent
        ]

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._records.clear()
            self._totals = {o: 0 for o in DispatchOutcome}
            self._by_provider.clear()
            self._total_latency_ms = 0
        logger.info("Dispatch metrics reset")
