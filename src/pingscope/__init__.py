"""
PingScope - Network Path Diagnostics

A toolkit for host reachability checks, subnet ping sweeps and
TTL-stepped path tracing with hop geolocation and map output.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

__version__ = "0.1.0"
__author__ = "DNS Science.io"
__copyright__ = "Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company"
