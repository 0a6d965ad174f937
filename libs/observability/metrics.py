"""Metrics and structured logging for the JobPing backend.

Metrics are held in memory by a thread-safe collector; the module-level
helpers record into a process-wide instance. ``StructuredLogger`` wraps the
stdlib logger and renders keyword context as a JSON suffix.
"""
from __future__ import annotations
import json
import logging
import os
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class MetricData:
    """Container for metric data point"""
    name: str
    value: float
    tags: Dict[str, str] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    type: str = "counter"  # counter, histogram, gauge


class MetricsCollector:
    """Thread-safe metrics collector with in-memory storage.

    Only the most recent ``max_points`` data points are kept per metric;
    count, sum and latest value are aggregated over every recorded event.
    """

    def __init__(self, max_points: int = 1000):
        self.max_points = max(1, int(max_points))
        self._metrics: Dict[str, Deque[MetricData]] = defaultdict(lambda: deque(maxlen=self.max_points))
        self._totals: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
        self._record(name, value, tags or {}, "counter")

    def histogram(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        self._record(name, value, tags or {}, "histogram")

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        self._record(name, value, tags or {}, "gauge")

    def timer(self, name: str, tags: Optional[Dict[str, str]] = None):
        """Context manager recording ``<name>.duration_ms``"""
        return TimerContext(self, name, tags or {})

    def _record(self, name: str, value: float, tags: Dict[str, str], metric_type: str) -> None:
        with self._lock:
            self._metrics[name].append(MetricData(name=name, value=value, tags=tags, type=metric_type))
            totals = self._totals.setdefault(name, {'count': 0, 'sum': 0.0, 'latest': 0.0})
            totals['count'] += 1
            totals['sum'] += value
            totals['latest'] = value

    def get_metrics(self, name: Optional[str] = None) -> Dict[str, List[MetricData]]:
        """Recent data points, oldest first"""
        with self._lock:
            if name:
                return {name: list(self._metrics.get(name, []))}
            return {k: list(v) for k, v in self._metrics.items()}

    def total(self, name: str) -> float:
        """Sum of all recorded values for a metric (0 when never recorded)"""
        with self._lock:
            return self._totals.get(name, {}).get('sum', 0)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                name: {
                    'count': int(t['count']),
                    'latest': t['latest'],
                    'sum': t['sum'],
                    'avg': t['sum'] / t['count'],
                }
                for name, t in self._totals.items()
            }

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._totals.clear()


class TimerContext:
    """Context manager for measuring operation duration"""

    def __init__(self, collector: MetricsCollector, name: str, tags: Dict[str, str]):
        self.collector = collector
        self.name = name
        self.tags = tags
        self.start_time: Optional[float] = None
        self.elapsed: float = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.elapsed = time.perf_counter() - self.start_time
            self.collector.histogram(f"{self.name}.duration_ms", self.elapsed * 1000, self.tags)


_global_metrics = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return _global_metrics


def counter(name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
    _global_metrics.counter(name, value, tags)


class PerformanceMetrics:
    """Names of the metrics emitted by the matching pipeline and API"""

    # Matching outcomes
    AI_SUCCESS = "matching.ai_success"
    AI_FAILURE = "matching.ai_failure"
    FALLBACK_USED = "matching.fallback_used"
    EMERGENCY_FALLBACK = "matching.emergency_fallback"
    VALIDATION_REJECTED = "matching.validation_rejected"

    # Cache / breaker
    CACHE_HIT = "matching.cache_hit"
    CACHE_MISS = "matching.cache_miss"
    CIRCUIT_OPEN = "matching.circuit_open"

    # Stage timers
    PREFILTER_STAGE = "matching.prefilter"
    AI_STAGE = "matching.ai"
    FALLBACK_STAGE = "matching.fallback"

    # Background work
    EMBEDDINGS_PROCESSED = "embedding.jobs_processed"
    EMBEDDINGS_FAILED = "embedding.jobs_failed"
    EMBEDDING_BATCH = "embedding.batch_size"
    ANALYTICS_EVENTS = "analytics.events_tracked"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; level defaults to $LOG_LEVEL or INFO."""
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, name, logging.INFO))


class StructuredLogger:
    """Logger adapter taking keyword context: ``log.info("msg", user=email)``"""

    def __init__(self, name: str = "jobping"):
        self.name = name
        self._logger = logging.getLogger(name)

    def info(self, msg: str, **kwargs) -> None:
        self._log(logging.INFO, msg, kwargs)

    def error(self, msg: str, **kwargs) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def warning(self, msg: str, **kwargs) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def debug(self, msg: str, **kwargs) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def exception(self, msg: str, **kwargs) -> None:
        self._log(logging.ERROR, msg, kwargs, exc_info=True)

    def _log(self, level: int, msg: str, context: Dict[str, Any], exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if context:
            msg = f"{msg} | {json.dumps(context, default=str)}"
        self._logger.log(level, msg, exc_info=exc_info, stacklevel=3)


def get_logger(name: str = "jobping") -> StructuredLogger:
    return StructuredLogger(name)
