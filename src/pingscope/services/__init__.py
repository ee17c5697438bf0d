"""
External API Services Module

Provides clients for external APIs:
- ip-api.com - IP geolocation for traced hops
"""

from pingscope.services.geo import GeoClient, GeoInfo, is_local_address

__all__ = [
    "GeoClient",
    "GeoInfo",
    "is_local_address",
]
