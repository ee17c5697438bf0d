"""
Ping sweep over a range of host suffixes under one /24 prefix.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from pingscope.config import SCAN_TIMEOUT_MS
from pingscope.logging_config import track_error
from pingscope.probe.core import ProbeResult, ProbeStatus, Prober, probe

logger = logging.getLogger(__name__)


class ScanInputError(ValueError):
    """Malformed scan prefix or bounds."""
    pass


@dataclass
class ScanOutcome:
    """Reachability of a single address."""
    address: str
    reachable: bool
    result: ProbeResult | None = None


@dataclass
class ScanReport:
    """All outcomes of one sweep, in input order."""
    prefix: str
    start: int
    end: int
    outcomes: list[ScanOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def reachable(self) -> list[str]:
        return [o.address for o in self.outcomes if o.reachable]

    @property
    def reachable_count(self) -> int:
        return sum(1 for o in self.outcomes if o.reachable)


def _parse_octet(value: int | str, what: str) -> int:
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ScanInputError(f"{what} must be a number, got {value!r}")
    if not 0 <= number <= 255:
        raise ScanInputError(f"{what} must be between 0 and 255, got {number}")
    return number


def validate_scan_range(
    prefix: str,
    start: int | str,
    end: int | str,
) -> tuple[str, int, int]:
    """Check a sweep request before any probe is sent.

    ``start`` greater than ``end`` is accepted and means an empty sweep.

    Raises:
        ScanInputError: prefix is not three dotted octets, or a bound is
            not a number in 0-255
    """
    prefix = prefix.strip().rstrip(".")
    parts = prefix.split(".")
    if len(parts) != 3:
        raise ScanInputError(f"Prefix must have three octets (e.g. 192.168.1), got {prefix!r}")
    for part in parts:
        _parse_octet(part, "Prefix octet")

    return prefix, _parse_octet(start, "Start"), _parse_octet(end, "End")


def scan_addresses(prefix: str, start: int, end: int) -> list[str]:
    """Addresses covered by a sweep, inclusive of both bounds."""
    return [f"{prefix}.{suffix}" for suffix in range(start, end + 1)]


async def scan_async(
    prefix: str,
    start: int | str,
    end: int | str,
    timeout_ms: int = SCAN_TIMEOUT_MS,
    concurrency: int | None = None,
    prober: Prober = probe,
) -> ScanReport:
    """Ping every address in ``prefix.start`` .. ``prefix.end`` concurrently.

    All probes run at once unless ``concurrency`` caps the number in
    flight. Each probe is independent: one that errors is recorded as
    unreachable and never cancels the others.
    """
    prefix, start, end = validate_scan_range(prefix, start, end)
    addresses = scan_addresses(prefix, start, end)
    report = ScanReport(prefix=prefix, start=start, end=end)

    if not addresses:
        logger.debug(f"Empty sweep {prefix}.{start}-{end}")
        return report

    semaphore = asyncio.Semaphore(concurrency) if concurrency else None

    async def check_host(address: str) -> ScanOutcome:
        try:
            if semaphore is None:
                result = await prober(address, timeout_ms)
            else:
                async with semaphore:
                    result = await prober(address, timeout_ms)
        except Exception as e:
            logger.debug(f"Probe to {address} raised: {e}")
            result = ProbeResult(target=address, status=ProbeStatus.ERROR, message=str(e))
        return ScanOutcome(
            address=address,
            reachable=result.status == ProbeStatus.SUCCESS,
            result=result,
        )

    logger.info(f"Sweeping {len(addresses)} addresses under {prefix} ({timeout_ms} ms timeout)")
    tasks = [check_host(address) for address in addresses]
    report.outcomes = list(await asyncio.gather(*tasks))

    logger.info(f"Sweep of {prefix}.{start}-{end} done: {report.reachable_count} reachable")
    return report


def scan(
    prefix: str,
    start: int | str,
    end: int | str,
    timeout_ms: int = SCAN_TIMEOUT_MS,
    concurrency: int | None = None,
    prober: Prober = probe,
) -> ScanReport:
    """Synchronous wrapper for the ping sweep."""
    try:
        return asyncio.run(scan_async(prefix, start, end, timeout_ms, concurrency, prober))
    except ScanInputError as e:
        track_error("scan_input", str(e), context={"prefix": prefix, "start": start, "end": end})
        raise
