# tests/conftest.py
import logging

import pytest

from pingscope.config import DiagConfig, set_config
from pingscope.logging_config import reset_error_stats
from pingscope.probe.core import ProbeResult, ProbeStatus
from pingscope.services.geo import GeoInfo


class ScriptedProber:
    """Prober stand-in answering from a script.

    Keys are an address (plain pings) or (address, ttl) for trace
    probes. Values are (status, responder) tuples or an exception to
    raise. Anything unscripted times out.
    """

    def __init__(self, script=None, default=ProbeStatus.TIMED_OUT):
        self.script = script or {}
        self.default = default
        self.calls = []

    async def __call__(self, address, timeout_ms, ttl=None):
        self.calls.append((address, timeout_ms, ttl))
        key = (address, ttl) if ttl is not None else address
        reply = self.script.get(key)
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            return ProbeResult(target=address, status=self.default,
                               wall_clock_ms=float(timeout_ms), ttl=ttl,
                               message="scripted error" if self.default == ProbeStatus.ERROR else None)
        status, responder = reply
        return ProbeResult(
            target=address,
            status=status,
            address=responder,
            round_trip_ms=3,
            wall_clock_ms=3.25,
            ttl=ttl,
            message="Destination host unreachable" if status == ProbeStatus.ERROR else None,
        )

    @property
    def trace_calls(self):
        return [c for c in self.calls if c[2] is not None]


class FakeGeo:
    """Geo lookup stand-in keyed by IP; raises for addresses in ``broken``."""

    def __init__(self, locations=None, broken=()):
        self.locations = locations or {}
        self.broken = set(broken)
        self.lookups = []

    async def lookup_async(self, ip):
        self.lookups.append(ip)
        if ip in self.broken:
            raise RuntimeError("geo service down")
        data = self.locations.get(ip)
        if data is None:
            return None
        country, city, isp, lat, lon = data
        return GeoInfo(ip=ip, status="success", country=country, city=city,
                       isp=isp, lat=lat, lon=lon)


@pytest.fixture(autouse=True)
def isolated_config():
    set_config(DiagConfig(geo_api_url="http://geo.test/json"))
    reset_error_stats()
    yield
    set_config(None)
    # CLI runs attach handlers to streams that CliRunner closes
    logging.getLogger("pingscope").handlers.clear()


@pytest.fixture
def scripted_prober():
    return ScriptedProber


@pytest.fixture
def fake_geo():
    return FakeGeo
