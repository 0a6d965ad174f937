"""Observability module for JobPing"""
from .metrics import (
    MetricsCollector,
    get_metrics_collector,
    counter,
    PerformanceMetrics,
    configure_logging,
    get_logger,
)

__all__ = [
    'MetricsCollector',
    'get_metrics_collector',
    'counter',
    'PerformanceMetrics',
    'configure_logging',
    'get_logger',
]
