"""
Scan Module

Concurrent ICMP reachability sweeps over an IPv4 /24.
"""

from pingscope.scan.core import (
    scan,
    scan_async,
    scan_addresses,
    validate_scan_range,
    ScanInputError,
    ScanOutcome,
    ScanReport,
)

__all__ = [
    "scan",
    "scan_async",
    "scan_addresses",
    "validate_scan_range",
    "ScanInputError",
    "ScanOutcome",
    "ScanReport",
]
