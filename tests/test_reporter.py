# tests/test_reporter.py
import io

from pinger import ProbeResult, ReplyEvent
from reporter import ConsoleReporter, format_latency
from rtt_tracker import RttSummary


def make_result(**overrides):
    values = dict(target="ggsn.test", address="192.0.2.1", sent=10, received=7,
                  duplicates=0, reorders=0, refused=0, elapsed=9.0054, rtt=None)
    values.update(overrides)
    return ProbeResult(**values)


def test_format_latency():
    assert format_latency(0.010) == "10.00 ms"
    assert format_latency(None) == "Inf"


def test_start_banner():
    out = io.StringIO()
    ConsoleReporter(out).start("ggsn.test", "192.0.2.1", 12)
    assert out.getvalue() == "GTPING ggsn.test (192.0.2.1) 12 bytes of data.\n"


def test_reply_line_plain():
    out = io.StringIO()
    ConsoleReporter(out).reply(ReplyEvent(size=12, address="192.0.2.1", seq=0, teid=0, latency=0.010))
    assert out.getvalue() == "12 bytes from 192.0.2.1: seq=0 time=10.00 ms\n"


def test_reply_line_with_metadata_and_annotations():
    out = io.StringIO()
    event = ReplyEvent(size=12, address="192.0.2.1", seq=3, teid=0, latency=0.0125,
                       ttl=64, tos=0xB8, duplicate=True, reordered=True)
    ConsoleReporter(out).reply(event)
    assert out.getvalue() == ("12 bytes from 192.0.2.1: seq=3 ttl=64 tos=b8 time=12.50 ms"
                              " (DUP!) (out of order)\n")


def test_unmeasurable_reply_line():
    out = io.StringIO()
    ConsoleReporter(out).reply(ReplyEvent(size=12, address="192.0.2.1", seq=9, teid=0, latency=None))
    assert out.getvalue().endswith("time=Inf\n")


def test_unreachable_and_flood_markers():
    out = io.StringIO()
    reporter = ConsoleReporter(out)
    reporter.unreachable()
    reporter.flood_sent()
    reporter.flood_received()
    assert out.getvalue() == "ICMP destination unreachable\n.\b \b"


def test_summary_with_rtt():
    out = io.StringIO()
    rtt = RttSummary(count=7, min=0.001, max=0.003, mean=0.002, mdev=0.0005)
    ConsoleReporter(out).finish(make_result(duplicates=2, refused=1, rtt=rtt))
    lines = out.getvalue().splitlines()
    assert lines[1] == "--- ggsn.test GTP ping statistics ---"
    assert lines[2] == "10 packets transmitted, 7 received, 30% packet loss, time 9005ms"
    assert lines[3] == "0 out of order, 2 duplicates, 1 connection refused"
    assert lines[4] == "rtt min/avg/max/mdev = 1.000/2.000/3.000/0.500 ms"


def test_summary_without_samples():
    out = io.StringIO()
    ConsoleReporter(out).finish(make_result(received=0))
    text = out.getvalue()
    assert "100% packet loss" in text
    assert "rtt" not in text
    assert "out of order" not in text
