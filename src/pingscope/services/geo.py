"""
ip-api.com geolocation client.

Resolves a public IP address to country, city, ISP and coordinates.
Private, loopback and link-local addresses are answered locally with a
fixed placeholder and never reach the network.

Copyright (c) 2025 DNS Science.io, an After Dark Systems, LLC company.
All rights reserved.
"""

import asyncio
import logging
from dataclasses import dataclass

import httpx

from pingscope.config import get_config
from pingscope.logging_config import track_error

logger = logging.getLogger(__name__)

GEO_SUCCESS = "success"
GEO_FAIL = "fail"

LOCAL_HOST_LABEL = "Local host"
LOCAL_NETWORK_LABEL = "Local network"
UNKNOWN_LOCATION_LABEL = "Unknown location"

LOCAL_HOST_ADDRESSES = ("", "0.0.0.0", "::1")

# Prefix match only; "172." deliberately covers more than 172.16/12
LOCAL_NETWORK_PREFIXES = (
    "10.",
    "192.168.",
    "172.",
    "127.",
    "169.254.",
    "fe80:",
    "fd",
)

# ip-api.com returns everything by default; ask for what we use
GEO_FIELDS = "status,message,country,city,isp,lat,lon,query"


@dataclass
class GeoInfo:
    """Result of a geolocation lookup."""
    ip: str
    status: str = GEO_FAIL
    country: str | None = None
    city: str | None = None
    isp: str | None = None
    lat: float | None = None
    lon: float | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == GEO_SUCCESS

    @property
    def label(self) -> str:
        """Country, City (ISP) on success, else the placeholder."""
        if self.ok:
            return f"{self.country}, {self.city} ({self.isp})"
        return self.city or UNKNOWN_LOCATION_LABEL

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if self.ok and self.lat is not None and self.lon is not None:
            return (self.lat, self.lon)
        return None


def local_placeholder(ip: str | None) -> GeoInfo | None:
    """Placeholder for addresses that must not be looked up, else None."""
    ip = (ip or "").strip().lower()
    if ip in LOCAL_HOST_ADDRESSES:
        return GeoInfo(ip=ip, status=GEO_FAIL, city=LOCAL_HOST_LABEL)
    if ip.startswith(LOCAL_NETWORK_PREFIXES):
        return GeoInfo(ip=ip, status=GEO_FAIL, city=LOCAL_NETWORK_LABEL)
    return None


def is_local_address(ip: str | None) -> bool:
    return local_placeholder(ip) is not None


def _parse_response(ip: str, data: object) -> GeoInfo:
    if not isinstance(data, dict):
        return GeoInfo(ip=ip, error="Malformed response")

    result = GeoInfo(ip=ip, status=data.get("status") or GEO_FAIL)
    if result.status != GEO_SUCCESS:
        result.status = GEO_FAIL
        result.error = data.get("message") or "Lookup failed"
        return result

    result.country = data.get("country")
    result.city = data.get("city")
    result.isp = data.get("isp")
    try:
        result.lat = float(data["lat"])
        result.lon = float(data["lon"])
    except (KeyError, TypeError, ValueError):
        result.lat = None
        result.lon = None
    return result


class GeoClient:
    """Client for the ip-api.com JSON API with connection pooling.

    No caching or rate limiting: every call performs a fresh request.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        config = get_config()
        self.base_url = (base_url or config.geo_api_url).rstrip("/")
        self.timeout = timeout or config.geo_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 3.0)),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def lookup_async(self, ip: str) -> GeoInfo:
        """Look up an address; failures come back as status ``fail``."""
        placeholder = local_placeholder(ip)
        if placeholder is not None:
            return placeholder

        client = await self._get_client()
        try:
            resp = await client.get(
                f"{self.base_url}/{ip}",
                params={"fields": GEO_FIELDS},
            )
            resp.raise_for_status()
            result = _parse_response(ip, resp.json())
        except httpx.HTTPStatusError as e:
            result = GeoInfo(ip=ip, error=f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            result = GeoInfo(ip=ip, error=str(e) or e.__class__.__name__)

        if result.error:
            track_error("geo_lookup", result.error, context={"ip": ip})
        return result

    def lookup(self, ip: str) -> GeoInfo:
        """Synchronous lookup."""
        async def run() -> GeoInfo:
            async with self:
                return await self.lookup_async(ip)
        return asyncio.run(run())
