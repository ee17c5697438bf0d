"""
TTL-stepped path tracing.

Probes the target with TTL 1, 2, 3, ... one at a time. Each probe
produces exactly one HopRecord, yielded as soon as it is complete.
The trace stops when the destination answers, on the first error that
is not a timeout, or after ``max_hops`` probes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Protocol

from pingscope.config import DEFAULT_MAX_HOPS, TRACE_TIMEOUT_MS
from pingscope.mapview.core import MapRenderer, escape_label
from pingscope.probe.core import ProbeResult, ProbeStatus, Prober, privileged_probe, warm_up
from pingscope.services.geo import (
    GeoClient,
    GeoInfo,
    UNKNOWN_LOCATION_LABEL,
    local_placeholder,
)

logger = logging.getLogger(__name__)

TIMEOUT_ADDRESS = "*"
ERROR_ADDRESS = "error"
NO_GEO = "-"


class GeoLookup(Protocol):
    async def lookup_async(self, ip: str) -> GeoInfo | None:
        ...


class TraceOutcome(str, Enum):
    """How a trace ended."""
    RUNNING = "running"
    REACHED = "reached"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


@dataclass
class HopRecord:
    """One TTL step of a trace."""
    hop: int
    address: str
    local_time: str
    network_time: str
    geo: str
    latitude: float | None = None
    longitude: float | None = None
    status: ProbeStatus = ProbeStatus.TIMED_OUT
    message: str | None = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_destination(self) -> bool:
        return self.status == ProbeStatus.SUCCESS

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProbeStatus.SUCCESS, ProbeStatus.ERROR)

    @property
    def map_label(self) -> str:
        return escape_label(f"Hop {self.hop}: {self.address}", self.geo)


@dataclass
class TraceResult:
    """All hops of a finished trace."""
    target: str
    hops: list[HopRecord] = field(default_factory=list)
    outcome: TraceOutcome = TraceOutcome.RUNNING

    @property
    def reached(self) -> bool:
        return self.outcome == TraceOutcome.REACHED


def _format_ms(value: float) -> str:
    return f"{value:.2f} ms"


class PathTracer:
    """Sequential TTL prober with geolocation and map output.

    Usage:
        tracer = PathTracer(geo=GeoClient(), map_renderer=LeafletMap())
        async for hop in tracer.hops("8.8.8.8"):
            print(hop.hop, hop.address, hop.local_time)
    """

    def __init__(
        self,
        prober: Prober = privileged_probe,
        geo: GeoLookup | None = None,
        map_renderer: MapRenderer | None = None,
        max_hops: int = DEFAULT_MAX_HOPS,
        timeout_ms: int = TRACE_TIMEOUT_MS,
        skip_warm_up: bool = False,
    ):
        if not 1 <= max_hops <= 255:
            raise ValueError(f"max_hops must be between 1 and 255, got {max_hops}")
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")

        self.prober = prober
        self.geo = geo
        self.map_renderer = map_renderer
        self.max_hops = max_hops
        self.timeout_ms = timeout_ms
        self.skip_warm_up = skip_warm_up
        self.outcome = TraceOutcome.RUNNING

    async def _probe(self, target: str, ttl: int) -> ProbeResult:
        try:
            return await self.prober(target, self.timeout_ms, ttl)
        except Exception as e:
            logger.warning(f"Prober raised at ttl={ttl}: {e}")
            return ProbeResult(target=target, status=ProbeStatus.ERROR, ttl=ttl,
                               message=str(e) or e.__class__.__name__)

    async def _locate(self, address: str) -> GeoInfo:
        placeholder = local_placeholder(address)
        if placeholder is not None:
            return placeholder
        if self.geo is None:
            return GeoInfo(ip=address, city=NO_GEO)

        try:
            info = await self.geo.lookup_async(address)
        except Exception as e:
            logger.warning(f"Geo lookup for {address} failed: {e}")
            info = None

        if info is None:
            return GeoInfo(ip=address, city=UNKNOWN_LOCATION_LABEL)
        return info

    async def _resolved_hop(self, ttl: int, result: ProbeResult) -> HopRecord:
        address = result.address or result.target
        info = await self._locate(address)
        coordinates = info.coordinates

        hop = HopRecord(
            hop=ttl,
            address=address,
            local_time=_format_ms(result.wall_clock_ms),
            network_time=f"{result.round_trip_ms} ms",
            geo=info.label,
            latitude=coordinates[0] if coordinates else None,
            longitude=coordinates[1] if coordinates else None,
            status=result.status,
        )

        if hop.has_location and self.map_renderer is not None:
            self.map_renderer.add_point(hop.latitude, hop.longitude, hop.map_label)
        return hop

    async def hops(self, target: str) -> AsyncIterator[HopRecord]:
        """Trace ``target``, yielding each hop as it completes."""
        self.outcome = TraceOutcome.RUNNING

        if self.map_renderer is not None:
            self.map_renderer.clear()

        if not self.skip_warm_up:
            try:
                await warm_up(self.prober)
            except Exception as e:
                logger.warning(f"Warm-up probe raised: {e}")

        logger.info(f"Tracing {target}, {self.max_hops} hops max, {self.timeout_ms} ms per hop")

        for ttl in range(1, self.max_hops + 1):
            result = await self._probe(target, ttl)

            if result.is_hop:
                hop = await self._resolved_hop(ttl, result)
                logger.debug(f"{ttl}: {hop.address} {hop.local_time} ({hop.network_time}) {hop.geo}")
                if result.status == ProbeStatus.SUCCESS:
                    self.outcome = TraceOutcome.REACHED
                    yield hop
                    logger.info(f"Reached {target} in {ttl} hops")
                    return
                yield hop

            elif result.status == ProbeStatus.TIMED_OUT:
                logger.debug(f"{ttl}: * timeout")
                yield HopRecord(
                    hop=ttl,
                    address=TIMEOUT_ADDRESS,
                    local_time=_format_ms(result.wall_clock_ms),
                    network_time="Timeout",
                    geo=NO_GEO,
                    status=ProbeStatus.TIMED_OUT,
                )

            else:
                status_text = result.message or result.status.value
                logger.warning(f"Trace to {target} stopped at hop {ttl}: {status_text}")
                self.outcome = TraceOutcome.FAILED
                yield HopRecord(
                    hop=ttl,
                    address=ERROR_ADDRESS,
                    local_time=_format_ms(result.wall_clock_ms),
                    network_time=result.status.value,
                    geo=status_text,
                    status=ProbeStatus.ERROR,
                    message=result.message,
                )
                return

        self.outcome = TraceOutcome.EXHAUSTED
        logger.info(f"Gave up on {target} after {self.max_hops} hops")

    async def run(self, target: str) -> TraceResult:
        """Trace ``target`` and collect every hop."""
        result = TraceResult(target=target)
        async for hop in self.hops(target):
            result.hops.append(hop)
        result.outcome = self.outcome
        return result


async def trace_async(
    target: str,
    max_hops: int = DEFAULT_MAX_HOPS,
    timeout_ms: int = TRACE_TIMEOUT_MS,
    resolve_geo: bool = True,
    map_renderer: MapRenderer | None = None,
    prober: Prober = privileged_probe,
) -> TraceResult:
    """Trace a route with a fresh geolocation client."""
    if not resolve_geo:
        tracer = PathTracer(prober, None, map_renderer, max_hops, timeout_ms)
        return await tracer.run(target)

    async with GeoClient() as geo:
        tracer = PathTracer(prober, geo, map_renderer, max_hops, timeout_ms)
        return await tracer.run(target)


def trace(
    target: str,
    max_hops: int = DEFAULT_MAX_HOPS,
    timeout_ms: int = TRACE_TIMEOUT_MS,
    resolve_geo: bool = True,
    map_renderer: MapRenderer | None = None,
    prober: Prober = privileged_probe,
) -> TraceResult:
    """Synchronous traceroute."""
    return asyncio.run(trace_async(target, max_hops, timeout_ms, resolve_geo, map_renderer, prober))
