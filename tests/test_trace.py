# tests/test_trace.py
import asyncio

import pytest

from pingscope.mapview.core import RecordingMap
from pingscope.probe.core import ProbeResult, ProbeStatus, privileged_probe
from pingscope.services.geo import LOCAL_NETWORK_LABEL, UNKNOWN_LOCATION_LABEL
from pingscope.trace.core import PathTracer, TraceOutcome, trace

OK = ProbeStatus.SUCCESS
EXCEEDED = ProbeStatus.TTL_EXCEEDED
ERROR = ProbeStatus.ERROR


def run(tracer, target):
    return asyncio.run(tracer.run(target))


def test_trace_stops_at_destination(scripted_prober, fake_geo):
    """Hop 1 times out, hop 2 is a private router, hop 3 is the target."""
    prober = scripted_prober({
        ("10.0.0.5", 2): (EXCEEDED, "192.168.0.1"),
        ("10.0.0.5", 3): (OK, "10.0.0.5"),
    })
    geo = fake_geo()
    result = run(PathTracer(prober, geo, max_hops=5), "10.0.0.5")

    assert len(result.hops) == 3
    assert result.hops[0].address == "*"
    assert result.hops[0].network_time == "Timeout"
    assert result.hops[1].address == "192.168.0.1"
    assert result.hops[1].geo == LOCAL_NETWORK_LABEL
    assert result.hops[2].status == OK
    assert result.hops[2].is_destination
    assert result.outcome == TraceOutcome.REACHED
    assert result.reached
    assert [c[2] for c in prober.trace_calls] == [1, 2, 3]
    assert geo.lookups == []


def test_warm_up_runs_once_before_first_hop(scripted_prober):
    prober = scripted_prober({("192.0.2.9", 1): (OK, "192.0.2.9")})
    run(PathTracer(prober), "192.0.2.9")

    assert prober.calls[0] == ("127.0.0.1", 100, None)
    assert prober.calls[1] == ("192.0.2.9", 1000, 1)
    assert len(prober.calls) == 2


def test_skip_warm_up(scripted_prober):
    prober = scripted_prober({("192.0.2.9", 1): (OK, "192.0.2.9")})
    run(PathTracer(prober, skip_warm_up=True), "192.0.2.9")
    assert prober.calls == [("192.0.2.9", 1000, 1)]


def test_silent_target_exhausts_max_hops(scripted_prober):
    prober = scripted_prober()
    result = run(PathTracer(prober, max_hops=6, timeout_ms=200), "203.0.113.50")

    assert len(result.hops) == 6
    assert all(h.address == "*" for h in result.hops)
    assert [h.hop for h in result.hops] == [1, 2, 3, 4, 5, 6]
    assert not any(h.status == OK for h in result.hops)
    assert result.outcome == TraceOutcome.EXHAUSTED
    assert {c[1] for c in prober.trace_calls} == {200}


def test_fatal_error_terminates_trace(scripted_prober):
    prober = scripted_prober({
        ("198.51.100.7", 1): (EXCEEDED, "10.0.0.1"),
        ("198.51.100.7", 2): (ERROR, "10.0.0.2"),
        ("198.51.100.7", 3): (OK, "198.51.100.7"),
    })
    result = run(PathTracer(prober, max_hops=10), "198.51.100.7")

    assert len(result.hops) == 2
    last = result.hops[-1]
    assert last.address == "error"
    assert last.status == ERROR
    assert last.geo == "Destination host unreachable"
    assert last.is_terminal
    assert result.outcome == TraceOutcome.FAILED
    assert len(prober.trace_calls) == 2


def test_prober_exception_is_fatal_hop_not_crash(scripted_prober):
    prober = scripted_prober({("198.51.100.7", 1): RuntimeError("socket exploded")})
    result = run(PathTracer(prober), "198.51.100.7")

    assert [h.address for h in result.hops] == ["error"]
    assert result.hops[0].message == "socket exploded"
    assert result.outcome == TraceOutcome.FAILED


def test_hop_indices_are_contiguous(scripted_prober):
    script = {("8.8.8.8", ttl): (EXCEEDED, f"203.0.113.{ttl}") for ttl in (1, 2, 4, 6)}
    script[("8.8.8.8", 7)] = (OK, "8.8.8.8")
    result = run(PathTracer(scripted_prober(script)), "8.8.8.8")

    assert [h.hop for h in result.hops] == list(range(1, 8))
    assert [h.address for h in result.hops] == [
        "203.0.113.1", "203.0.113.2", "*", "203.0.113.4", "*", "203.0.113.6", "8.8.8.8",
    ]


def test_hop_records_both_timings(scripted_prober):
    prober = scripted_prober({("8.8.8.8", 1): (OK, "8.8.8.8")})
    hop = run(PathTracer(prober), "8.8.8.8").hops[0]
    assert hop.local_time == "3.25 ms"
    assert hop.network_time == "3 ms"


def test_public_hops_are_located_and_mapped_in_order(scripted_prober, fake_geo):
    prober = scripted_prober({
        ("8.8.8.8", 1): (EXCEEDED, "192.168.1.1"),
        ("8.8.8.8", 2): (EXCEEDED, "203.0.113.1"),
        ("8.8.8.8", 3): (EXCEEDED, "198.51.100.1"),
        ("8.8.8.8", 4): (OK, "8.8.8.8"),
    })
    geo = fake_geo({
        "203.0.113.1": ("Germany", "Frankfurt", "Example Transit", 50.11, 8.68),
        "8.8.8.8": ("United States", "Mountain View", "Google LLC", 37.39, -122.08),
    })
    renderer = RecordingMap()
    result = run(PathTracer(prober, geo, renderer), "8.8.8.8")

    assert geo.lookups == ["203.0.113.1", "198.51.100.1", "8.8.8.8"]
    assert result.hops[1].geo == "Germany, Frankfurt (Example Transit)"
    assert (result.hops[1].latitude, result.hops[1].longitude) == (50.11, 8.68)
    assert result.hops[2].geo == UNKNOWN_LOCATION_LABEL
    assert not result.hops[2].has_location

    assert renderer.commands[0] == ("clear",)
    assert [p[:2] for p in renderer.points] == [(50.11, 8.68), (37.39, -122.08)]
    assert renderer.points[0][2] == "Hop 2: 203.0.113.1<br>Germany, Frankfurt (Example Transit)"


def test_map_labels_are_escaped(scripted_prober, fake_geo):
    prober = scripted_prober({("8.8.8.8", 1): (OK, "8.8.8.8")})
    geo = fake_geo({"8.8.8.8": ("Côte d'Ivoire", "<b>Abidjan</b>", "O'Net", 5.3, -4.0)})
    renderer = RecordingMap()
    run(PathTracer(prober, geo, renderer), "8.8.8.8")

    label = renderer.points[0][2]
    assert "'" not in label
    assert "<b>" not in label
    assert "&lt;b&gt;Abidjan" in label
    assert label.count("<br>") == 1


def test_geo_failure_does_not_abort_trace(scripted_prober, fake_geo):
    prober = scripted_prober({
        ("8.8.8.8", 1): (EXCEEDED, "203.0.113.1"),
        ("8.8.8.8", 2): (OK, "8.8.8.8"),
    })
    geo = fake_geo(broken={"203.0.113.1"})
    result = run(PathTracer(prober, geo), "8.8.8.8")

    assert result.hops[0].geo == UNKNOWN_LOCATION_LABEL
    assert result.outcome == TraceOutcome.REACHED


def test_local_addresses_never_reach_geo(scripted_prober, fake_geo):
    prober = scripted_prober({
        ("8.8.8.8", 1): (EXCEEDED, "127.0.0.1"),
        ("8.8.8.8", 2): (EXCEEDED, "10.1.1.1"),
        ("8.8.8.8", 3): (EXCEEDED, "fe80::1"),
        ("8.8.8.8", 4): (EXCEEDED, "::1"),
    })
    geo = fake_geo()
    result = run(PathTracer(prober, geo, max_hops=4), "8.8.8.8")

    assert geo.lookups == []
    assert [h.geo for h in result.hops[:3]] == [LOCAL_NETWORK_LABEL] * 3
    assert result.hops[3].geo == "Local host"


def test_hops_are_yielded_progressively(scripted_prober):
    prober = scripted_prober({
        ("8.8.8.8", 1): (EXCEEDED, "203.0.113.1"),
        ("8.8.8.8", 2): (OK, "8.8.8.8"),
    })
    tracer = PathTracer(prober, skip_warm_up=True)
    seen = []

    async def consume():
        async for hop in tracer.hops("8.8.8.8"):
            seen.append((hop.hop, len(prober.trace_calls)))
            assert tracer.outcome in (TraceOutcome.RUNNING, TraceOutcome.REACHED)

    asyncio.run(consume())
    assert seen == [(1, 1), (2, 2)]
    assert tracer.outcome == TraceOutcome.REACHED


def test_abandoned_trace_stops_probing(scripted_prober):
    prober = scripted_prober()
    tracer = PathTracer(prober, skip_warm_up=True)

    async def first_hop_only():
        hops = tracer.hops("203.0.113.9")
        hop = await hops.__anext__()
        await hops.aclose()
        return hop

    hop = asyncio.run(first_hop_only())
    assert hop.hop == 1
    assert len(prober.calls) == 1


@pytest.mark.parametrize("kwargs", [{"max_hops": 0}, {"max_hops": 256}, {"timeout_ms": 0}])
def test_invalid_settings_rejected_before_probing(scripted_prober, kwargs):
    prober = scripted_prober()
    with pytest.raises(ValueError):
        PathTracer(prober, **kwargs)
    assert prober.calls == []


def test_sync_trace_without_geo(scripted_prober):
    prober = scripted_prober({
        ("8.8.8.8", 1): (EXCEEDED, "203.0.113.1"),
        ("8.8.8.8", 2): (OK, "8.8.8.8"),
    })
    result = trace("8.8.8.8", max_hops=5, resolve_geo=False, prober=prober)

    assert result.reached
    assert [h.geo for h in result.hops] == ["-", "-"]


def test_tracer_defaults_to_raw_socket_prober():
    assert PathTracer().prober is privileged_probe


def test_permission_failure_becomes_fatal_hop():
    async def no_raw_sockets(address, timeout_ms, ttl=None):
        return ProbeResult(target=address, status=ERROR, ttl=ttl,
                           message="Root privileges are required to create the socket")

    result = run(PathTracer(no_raw_sockets), "8.8.8.8")
    assert len(result.hops) == 1
    assert result.hops[0].geo == "Root privileges are required to create the socket"
    assert result.outcome == TraceOutcome.FAILED


def test_warm_up_exception_does_not_escape(scripted_prober):
    prober = scripted_prober({
        "127.0.0.1": OSError("loopback down"),
        ("8.8.8.8", 1): (OK, "8.8.8.8"),
    })
    result = run(PathTracer(prober), "8.8.8.8")

    assert prober.calls[0] == ("127.0.0.1", 100, None)
    assert [h.address for h in result.hops] == ["8.8.8.8"]
    assert result.reached
