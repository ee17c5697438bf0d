"""
Trace Module

TTL-stepped ICMP traceroute with per-hop geolocation.
"""

from pingscope.trace.core import (
    trace,
    trace_async,
    HopRecord,
    PathTracer,
    TraceOutcome,
    TraceResult,
)

__all__ = [
    "trace",
    "trace_async",
    "HopRecord",
    "PathTracer",
    "TraceOutcome",
    "TraceResult",
]
