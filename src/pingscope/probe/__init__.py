"""
Probe Module

Single ICMP echo requests with status classification and timing.
"""

from pingscope.probe.core import (
    probe,
    probe_sync,
    privileged_probe,
    warm_up,
    ProbeResult,
    ProbeStatus,
    Prober,
)

__all__ = [
    "probe",
    "probe_sync",
    "privileged_probe",
    "warm_up",
    "ProbeResult",
    "ProbeStatus",
    "Prober",
]
