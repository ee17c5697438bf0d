"""
Single ICMP echo probe.

One call opens one ICMP socket, sends one echo request, waits for one
reply (or the timeout) and closes the socket again. Every failure is
reported through ProbeResult.status; nothing is raised to the caller.
"""

import asyncio
import logging
import socket
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from icmplib import (
    AsyncSocket,
    ICMPLibError,
    ICMPRequest,
    ICMPv4Socket,
    ICMPv6Socket,
    TimeoutExceeded,
    async_resolve,
    is_hostname,
    is_ipv6_address,
)
from icmplib.utils import unique_identifier

from pingscope.config import WARMUP_ADDRESS, WARMUP_TIMEOUT_MS, get_config

logger = logging.getLogger(__name__)

# Filler used when probing with an explicit TTL
TRACE_PAYLOAD = b"a" * 32

# linux/in.h - not exported by the socket module
IP_MTU_DISCOVER = 10
IP_PMTUDISC_DO = 2

ICMP_V4_ECHO_REPLY = 0
ICMP_V4_TIME_EXCEEDED = 11
ICMP_V6_ECHO_REPLY = 129
ICMP_V6_TIME_EXCEEDED = 3


class ProbeStatus(str, Enum):
    """Outcome of a single echo probe."""
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    TTL_EXCEEDED = "ttl_exceeded"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeResult:
    """Result of one echo request.

    ``round_trip_ms`` is the whole-millisecond value derived from the
    socket send/receive timestamps; ``wall_clock_ms`` is measured
    locally with a high resolution counter around the exchange.
    """
    target: str
    status: ProbeStatus
    address: str | None = None  # responder (router on TTL expiry)
    round_trip_ms: int = 0
    wall_clock_ms: float = 0.0
    ttl: int | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == ProbeStatus.SUCCESS

    @property
    def is_hop(self) -> bool:
        """A router or the destination answered."""
        return self.status in (ProbeStatus.SUCCESS, ProbeStatus.TTL_EXCEEDED)


Prober = Callable[..., Awaitable[ProbeResult]]


class DontFragmentICMPv4Socket(ICMPv4Socket):
    """IPv4 ICMP socket that sets the DF bit on outgoing packets."""

    def _create_socket(self, *args, **kwargs):
        sock = super()._create_socket(*args, **kwargs)
        if sys.platform.startswith("linux"):
            sock.setsockopt(socket.IPPROTO_IP, IP_MTU_DISCOVER, IP_PMTUDISC_DO)
        return sock


async def _resolve(address: str) -> str:
    if is_hostname(address):
        return (await async_resolve(address))[0]
    return address


def _classify(reply, ipv6: bool) -> ProbeStatus | None:
    if ipv6:
        echo, exceeded = ICMP_V6_ECHO_REPLY, ICMP_V6_TIME_EXCEEDED
    else:
        echo, exceeded = ICMP_V4_ECHO_REPLY, ICMP_V4_TIME_EXCEEDED
    if reply.type == echo:
        return ProbeStatus.SUCCESS
    if reply.type == exceeded:
        return ProbeStatus.TTL_EXCEEDED
    return None


async def probe(
    address: str,
    timeout_ms: int,
    ttl: int | None = None,
    privileged: bool | None = None,
) -> ProbeResult:
    """Send one ICMP echo request to ``address``.

    Args:
        address: Hostname or literal IPv4/IPv6 address
        timeout_ms: How long to wait for a reply, in milliseconds
        ttl: Hop limit (1-255). When given, a fixed 32 byte payload is
            sent with fragmentation disabled.
        privileged: Use raw sockets. Defaults to the configured value.

    Returns:
        ProbeResult; never raises.
    """
    if timeout_ms <= 0:
        return ProbeResult(target=address, status=ProbeStatus.ERROR, ttl=ttl,
                           message=f"Invalid timeout: {timeout_ms}")
    if ttl is not None and not 1 <= ttl <= 255:
        return ProbeResult(target=address, status=ProbeStatus.ERROR, ttl=ttl,
                           message=f"Invalid TTL: {ttl}")

    if privileged is None:
        privileged = get_config().privileged

    started = time.perf_counter()

    def elapsed_ms() -> float:
        return (time.perf_counter() - started) * 1000

    try:
        destination = await _resolve(address)
        ipv6 = is_ipv6_address(destination)

        request_kwargs = {}
        if ttl is not None:
            request_kwargs["ttl"] = ttl
            request_kwargs["payload"] = TRACE_PAYLOAD

        request = ICMPRequest(
            destination=destination,
            id=unique_identifier(),
            sequence=0,
            **request_kwargs,
        )

        if ipv6:
            icmp_sock = ICMPv6Socket(privileged=privileged)
        elif ttl is not None:
            icmp_sock = DontFragmentICMPv4Socket(privileged=privileged)
        else:
            icmp_sock = ICMPv4Socket(privileged=privileged)

        with AsyncSocket(icmp_sock) as sock:
            started = time.perf_counter()
            sock.send(request)
            reply = await sock.receive(request, timeout_ms / 1000)
            wall_clock = elapsed_ms()

        round_trip = int((reply.time - request.time) * 1000)
        status = _classify(reply, ipv6)

        if status is None:
            try:
                reply.raise_for_status()
                message = f"Unexpected ICMP type {reply.type} code {reply.code}"
            except ICMPLibError as e:
                message = str(e)
            logger.debug(f"{address} ttl={ttl}: {message} from {reply.source}")
            return ProbeResult(
                target=address,
                status=ProbeStatus.ERROR,
                address=reply.source,
                round_trip_ms=round_trip,
                wall_clock_ms=wall_clock,
                ttl=ttl,
                message=message,
            )

        return ProbeResult(
            target=address,
            status=status,
            address=reply.source,
            round_trip_ms=round_trip,
            wall_clock_ms=wall_clock,
            ttl=ttl,
        )

    except TimeoutExceeded:
        return ProbeResult(
            target=address,
            status=ProbeStatus.TIMED_OUT,
            wall_clock_ms=elapsed_ms(),
            ttl=ttl,
        )
    except (ICMPLibError, OSError) as e:
        logger.debug(f"Probe to {address} failed: {e}")
        return ProbeResult(
            target=address,
            status=ProbeStatus.ERROR,
            wall_clock_ms=elapsed_ms(),
            ttl=ttl,
            message=str(e) or e.__class__.__name__,
        )


def probe_sync(
    address: str,
    timeout_ms: int,
    ttl: int | None = None,
    privileged: bool | None = None,
) -> ProbeResult:
    """Synchronous probe."""
    return asyncio.run(probe(address, timeout_ms, ttl, privileged))


async def privileged_probe(
    address: str,
    timeout_ms: int,
    ttl: int | None = None,
) -> ProbeResult:
    """Probe over a raw socket.

    Linux datagram ICMP sockets never see Time Exceeded replies, so TTL
    stepping needs raw sockets whatever the configured default is.
    """
    return await probe(address, timeout_ms, ttl, privileged=True)


async def warm_up(prober: Prober = probe) -> ProbeResult:
    """Probe the loopback address once.

    The first ICMP exchange in a process pays for socket and driver
    setup; absorbing it here keeps the first real measurement clean.
    """
    result = await prober(WARMUP_ADDRESS, WARMUP_TIMEOUT_MS)
    logger.debug(f"Warm-up probe: {result.status.value} in {result.wall_clock_ms:.2f} ms")
    return result
