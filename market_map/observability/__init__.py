"""
Observability module.

Provides structured logging, correlation ID tracking, Langfuse tracing
and the failure-window breaker that protects chat from tracing outages.
"""

from market_map.observability.failure_window import FailureWindowTracker
from market_map.observability.trace_recorder import RootSpanRef, TraceRecorder, TraceSpan

__all__ = ["FailureWindowTracker", "RootSpanRef", "TraceRecorder", "TraceSpan"]
