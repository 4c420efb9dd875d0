"""Centralized metrics module for Prometheus instrumentation.

Usage:
    from translation_gateway.metrics.translation_metrics import translation_queue_length
"""

from translation_gateway.metrics import translation_metrics

__all__ = ["translation_metrics"]
